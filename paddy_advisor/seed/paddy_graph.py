"""Background knowledge for the Sri Lanka paddy tenant.

Plain data, loaded into Neo4j by seed_paddy.py and into the in-memory store by
build_knowledge_graph(). Costs are strings so they reach Decimal untouched (LKR
per acre application).
"""

from dataclasses import dataclass, field

from ..logic.state import (
    ControlMethod,
    Disease,
    EnvironmentalProfile,
    GeneralGuideline,
    Location,
    Symptom,
    Treatment,
    to_decimal,
)


# =============================================================================
# ENVIRONMENTAL PROFILES
# =============================================================================

WET_ZONE = {
    "humidity": "VeryHigh", "temperature_range": "Optimal", "soil_moisture": "High",
    "light_intensity": "Moderate", "rainfall_pattern": "VeryHigh",
}
WET_ZONE_SOUTH = {
    "humidity": "VeryHigh", "temperature_range": "Optimal", "soil_moisture": "High",
    "light_intensity": "Moderate", "rainfall_pattern": "High",
}
HILL_COUNTRY = {
    "humidity": "High", "temperature_range": "Optimal", "soil_moisture": "High",
    "light_intensity": "Moderate", "rainfall_pattern": "VeryHigh",
}
UPCOUNTRY_COOL = {
    "humidity": "High", "temperature_range": "Low", "soil_moisture": "High",
    "light_intensity": "Moderate", "rainfall_pattern": "High",
}
INTERMEDIATE = {
    "humidity": "High", "temperature_range": "Optimal", "soil_moisture": "Moderate",
    "light_intensity": "Moderate", "rainfall_pattern": "High",
}
INTERMEDIATE_HOT = {
    "humidity": "High", "temperature_range": "High", "soil_moisture": "Moderate",
    "light_intensity": "High", "rainfall_pattern": "High",
}
EAST_COAST = {
    "humidity": "High", "temperature_range": "High", "soil_moisture": "Moderate",
    "light_intensity": "High", "rainfall_pattern": "Moderate",
}
DRY_ZONE = {
    "humidity": "Moderate", "temperature_range": "High", "soil_moisture": "Moderate",
    "light_intensity": "High", "rainfall_pattern": "Moderate",
}
DRY_ZONE_SOUTH = {
    "humidity": "Moderate", "temperature_range": "High", "soil_moisture": "Low",
    "light_intensity": "High", "rainfall_pattern": "Low",
}
NORTHERN = {
    "humidity": "Moderate", "temperature_range": "High", "soil_moisture": "Low",
    "light_intensity": "VeryHigh", "rainfall_pattern": "Low",
}

LOCATIONS = [
    {"id": "Ampara", "name": "Ampara", **EAST_COAST},
    {"id": "Anuradhapura", "name": "Anuradhapura", **DRY_ZONE},
    {"id": "Badulla", "name": "Badulla", **UPCOUNTRY_COOL},
    {"id": "Battiocaloa", "name": "Battiocaloa", **EAST_COAST},
    {"id": "Colombo", "name": "Colombo", **WET_ZONE},
    {"id": "Galle", "name": "Galle", **WET_ZONE_SOUTH},
    {"id": "Gampaha", "name": "Gampaha", **WET_ZONE},
    {"id": "Hambantota", "name": "Hambantota", **DRY_ZONE_SOUTH},
    {"id": "Jaffna", "name": "Jaffna", **NORTHERN},
    {"id": "Kalutara", "name": "Kalutara", **WET_ZONE},
    {"id": "Kandy", "name": "Kandy", **HILL_COUNTRY},
    {"id": "Kilinochchi", "name": "Kilinochchi", **NORTHERN},
    {"id": "Kurunegala", "name": "Kurunegala", **INTERMEDIATE_HOT},
    {"id": "Mannar", "name": "Mannar", **NORTHERN},
    {"id": "Matale", "name": "Matale", **INTERMEDIATE},
    {"id": "Monaragala", "name": "Monaragala", **DRY_ZONE_SOUTH},
    {"id": "Mullaitivu", "name": "Mullaitivu", **NORTHERN},
    {"id": "Polonnaruwa", "name": "Polonnaruwa", **DRY_ZONE},
    {"id": "Puttalam", "name": "Puttalam", **DRY_ZONE},
    {"id": "Rathnapura", "name": "Rathnapura", **WET_ZONE},
    {"id": "Trincomalee", "name": "Trincomalee", **EAST_COAST},
    {"id": "Vavuniya", "name": "Vavuniya", **NORTHERN},
]


# =============================================================================
# DISEASES
# =============================================================================

DISEASES = [
    {
        "id": "Rice_Blast",
        "name": "Rice Blast",
        "overall_symptoms": "Spindle-shaped lesions on leaves, rotting of the panicle neck, unfilled grains",
        "agent": {"scientific_name": "Magnaporthe oryzae", "type": "Fungus"},
        "environment": {
            "temperature": "Optimal", "humidity": "High",
            "soil_moisture": "High", "rainfall_pattern": "VeryHigh",
        },
        "symptoms": [
            {
                "id": "RB_Leaf_Lesions",
                "description": "Diamond-shaped grey lesions with brown margins on leaf blades",
                "affected_parts": ["Leaf"],
                "profile": HILL_COUNTRY,
            },
            {
                "id": "RB_Neck_Rot",
                "description": "Neck of the panicle turns black and breaks, panicle falls over",
                "affected_parts": ["Panicle", "Neck"],
                "profile": WET_ZONE,
            },
            {
                "id": "RB_Node_Blast",
                "description": "Nodes turn blackish and break easily",
                "affected_parts": ["Stem", "Node"],
                "profile": INTERMEDIATE,
            },
        ],
        "control_methods": [
            {
                "id": "CM_RB_Tricyclazole",
                "method": "Spray",
                "treatment_status": "R",
                "product_name": "Beam 75 WP",
                "active_ingredient": "Tricyclazole",
                "description": "Systemic fungicide applied at booting and heading",
                "treatments": [
                    {
                        "id": "T_RB_Tricyclazole", "name": "Tricyclazole spray", "cost": "95.00",
                        "effectiveness": "High", "environment_impact": "Moderate toxicity to aquatic life",
                        "impact": "Stops lesion expansion within a week",
                        "guidelines": {
                            "safety_measures": "Wear gloves and a mask while mixing",
                            "instruction": "Mix 8 g in 16 L of water, cover foliage evenly",
                            "application_frequency": "Twice, 10 days apart",
                        },
                    },
                ],
            },
            {
                "id": "CM_RB_Isoprothiolane",
                "method": "Spray",
                "treatment_status": "R",
                "product_name": "Fuji-one 40 EC",
                "active_ingredient": "Isoprothiolane",
                "description": "Systemic fungicide with protective and curative action",
                "treatments": [
                    {
                        "id": "T_RB_Isoprothiolane", "name": "Isoprothiolane spray", "cost": "115.00",
                        "effectiveness": "High", "condition": "Apply before 10% of leaves show lesions",
                        "guidelines": {
                            "safety_measures": "Do not spray against the wind",
                            "instruction": "Mix 25 ml in 16 L of water",
                            "application_frequency": "Once at early symptom onset",
                        },
                    },
                    {
                        "id": "T_RB_Azoxystrobin", "name": "Azoxystrobin + Difenoconazole spray",
                        "cost": "160.00", "effectiveness": "VeryHigh",
                        "environment_impact": "Harmful to fish",
                    },
                ],
            },
            {
                "id": "CM_RB_Biological",
                "method": "Biological",
                "treatment_status": "P",
                "product_name": "Pseudomonas fluorescens seed treatment",
                "description": "Antagonistic bacteria suppressing blast inoculum",
                "treatments": [
                    {
                        "id": "T_RB_Pseudomonas", "name": "Pseudomonas seed treatment", "cost": "145.00",
                        "effectiveness": "Moderate",
                    },
                ],
            },
            {
                "id": "CM_RB_Cultural",
                "method": "Cultural",
                "treatment_status": "P",
                "product_name": "Balanced nitrogen and field sanitation",
                "description": "Split nitrogen application, remove infected stubble and weed hosts",
                "treatments": [
                    {
                        "id": "T_RB_Sanitation", "name": "Field sanitation", "cost": "20.00",
                        "effectiveness": "Moderate", "impact": "Reduces inoculum for the next season",
                    },
                ],
            },
        ],
    },
    {
        "id": "False_Smut",
        "name": "False Smut",
        "overall_symptoms": "Individual grains transformed into orange then greenish-black velvety spore balls",
        "agent": {"scientific_name": "Ustilaginoidea virens", "type": "Fungus"},
        "environment": {
            "temperature": "Optimal", "humidity": "VeryHigh",
            "soil_moisture": "High", "rainfall_pattern": "High",
        },
        "symptoms": [
            {
                "id": "FS_Spore_Balls",
                "description": "Velvety spore balls replacing individual grains",
                "affected_parts": ["Grain"],
                "profile": WET_ZONE_SOUTH,
            },
            {
                "id": "FS_Chalky_Grain",
                "description": "Chalky, light grains next to infected spikelets",
                "affected_parts": ["Grain", "Panicle"],
                "profile": WET_ZONE,
            },
        ],
        "control_methods": [
            {
                "id": "CM_FS_Propiconazole",
                "method": "Spray",
                "treatment_status": "R",
                "product_name": "Tilt 250 EC",
                "active_ingredient": "Propiconazole",
                "description": "Spray at booting stage",
                "treatments": [
                    {
                        "id": "T_FS_Propiconazole", "name": "Propiconazole spray", "cost": "120.00",
                        "effectiveness": "High",
                        "guidelines": {
                            "safety_measures": "Keep away from water bodies",
                            "instruction": "Mix 10 ml in 16 L of water",
                            "application_frequency": "Once at booting",
                        },
                    },
                ],
            },
            {
                "id": "CM_FS_Cultural",
                "method": "Cultural",
                "treatment_status": "P",
                "product_name": "Seed selection",
                "description": "Use clean seed and remove smut balls before harvest",
                "treatments": [
                    {
                        "id": "T_FS_Seed_Selection", "name": "Clean seed selection", "cost": "15.00",
                        "effectiveness": "Moderate",
                    },
                ],
            },
        ],
    },
    {
        "id": "Sheath_Blight",
        "name": "Sheath Blight",
        "overall_symptoms": "Oval greenish-grey lesions on sheaths near the water line",
        "agent": {"scientific_name": "Rhizoctonia solani", "type": "Fungus"},
        "environment": {
            "temperature": "High", "humidity": "High",
            "soil_moisture": "High", "rainfall_pattern": "High",
        },
        "symptoms": [
            {
                "id": "SB_Sheath_Lesions",
                "description": "Irregular lesions with grey centres on the leaf sheath",
                "affected_parts": ["Sheath"],
                "profile": INTERMEDIATE_HOT,
            },
        ],
        "control_methods": [
            {
                "id": "CM_SB_Hexaconazole",
                "method": "Spray",
                "treatment_status": "R",
                "product_name": "Anvil 5 SC",
                "active_ingredient": "Hexaconazole",
                "description": "Direct spray to the lower canopy",
                "treatments": [
                    {
                        "id": "T_SB_Hexaconazole", "name": "Hexaconazole spray", "cost": "110.00",
                        "effectiveness": "High",
                    },
                ],
            },
            {
                "id": "CM_SB_Cultural",
                "method": "Cultural",
                "treatment_status": "P",
                "product_name": "Wider spacing",
                "description": "Reduce plant density and avoid excess nitrogen",
                "treatments": [
                    {
                        "id": "T_SB_Spacing", "name": "Wider plant spacing", "cost": "10.00",
                        "effectiveness": "Moderate",
                    },
                ],
            },
        ],
    },
    {
        "id": "Bacterial_Leaf_Blight",
        "name": "Bacterial Leaf Blight",
        "overall_symptoms": "Water-soaked streaks from leaf tips turning yellow then white",
        "agent": {"scientific_name": "Xanthomonas oryzae pv. oryzae", "type": "Bacterium"},
        "environment": {
            "temperature": "High", "humidity": "VeryHigh",
            "soil_moisture": "High", "rainfall_pattern": "VeryHigh",
        },
        "symptoms": [
            {
                "id": "BLB_Leaf_Streaks",
                "description": "Wavy yellow streaks along leaf margins",
                "affected_parts": ["Leaf"],
                "profile": WET_ZONE,
            },
        ],
        "control_methods": [
            {
                "id": "CM_BLB_Copper",
                "method": "Spray",
                "treatment_status": "R",
                "product_name": "Copper oxychloride 50 WP",
                "active_ingredient": "Copper oxychloride",
                "description": "Protective bactericide",
                "treatments": [
                    {
                        "id": "T_BLB_Copper", "name": "Copper oxychloride spray", "cost": "80.00",
                        "effectiveness": "Moderate",
                    },
                ],
            },
            {
                "id": "CM_BLB_Cultural",
                "method": "Cultural",
                "treatment_status": "P",
                "product_name": "Drainage management",
                "description": "Drain fields intermittently and avoid clipping seedlings",
                "treatments": [
                    {
                        "id": "T_BLB_Drainage", "name": "Intermittent drainage", "cost": "25.00",
                        "effectiveness": "Moderate",
                    },
                ],
            },
        ],
    },
    {
        "id": "Sheath_Rot",
        "name": "Sheath Rot",
        "overall_symptoms": "Rotting of the flag leaf sheath enclosing the young panicle",
        "agent": {"scientific_name": "Sarocladium oryzae", "type": "Fungus"},
        "environment": {
            "temperature": "Optimal", "humidity": "High",
            "soil_moisture": "Moderate", "rainfall_pattern": "High",
        },
        "symptoms": [
            {
                "id": "SR_Flag_Sheath_Rot",
                "description": "Reddish-brown lesions on the flag leaf sheath, panicle fails to emerge",
                "affected_parts": ["Sheath", "Panicle"],
                "profile": INTERMEDIATE,
            },
        ],
        "control_methods": [
            {
                "id": "CM_SR_Carbendazim",
                "method": "Spray",
                "treatment_status": "R",
                "product_name": "Bavistin 50 WP",
                "active_ingredient": "Carbendazim",
                "description": "Spray at boot leaf stage",
                "treatments": [
                    {
                        "id": "T_SR_Carbendazim", "name": "Carbendazim spray", "cost": "90.00",
                        "effectiveness": "High",
                    },
                ],
            },
        ],
    },
]

GENERAL_GUIDELINES = [
    {
        "id": "Guideline_Certified_Seed",
        "description": "Seed health",
        "guideline": "Use certified seed paddy and treat seed before sowing",
    },
    {
        "id": "Guideline_Pesticide_Safety",
        "description": "Pesticide safety",
        "guideline": "Store agrochemicals away from food, wash hands and clothes after spraying",
    },
    {
        "id": "Guideline_Water_Management",
        "description": "Water management",
        "guideline": "Keep field drains clean and avoid prolonged stagnant water",
    },
]


# =============================================================================
# IN-MEMORY GRAPH
# =============================================================================

@dataclass
class KnowledgeGraph:
    """Background graph as entity objects (used by the in-memory fact store)."""
    diseases: dict[str, Disease] = field(default_factory=dict)
    locations: dict[str, Location] = field(default_factory=dict)
    control_methods: dict[str, ControlMethod] = field(default_factory=dict)
    treatments: dict[str, Treatment] = field(default_factory=dict)
    symptoms: dict[str, Symptom] = field(default_factory=dict)
    guidelines: list[GeneralGuideline] = field(default_factory=list)


def build_knowledge_graph(diseases=None, locations=None, guidelines=None) -> KnowledgeGraph:
    """Build a KnowledgeGraph from seed-shaped data (defaults to this module's data)."""
    graph = KnowledgeGraph()

    for loc in LOCATIONS if locations is None else locations:
        graph.locations[loc["id"]] = Location(
            id=loc["id"],
            name=loc.get("name", loc["id"]),
            profile=EnvironmentalProfile.from_properties(loc),
        )

    for d in DISEASES if diseases is None else diseases:
        disease = Disease(
            id=d["id"],
            name=d["name"],
            overall_symptoms=d.get("overall_symptoms"),
            agent_scientific_name=(d.get("agent") or {}).get("scientific_name"),
            agent_type=(d.get("agent") or {}).get("type"),
            environment=dict(d.get("environment") or {}),
        )
        for s in d.get("symptoms", []):
            graph.symptoms[s["id"]] = Symptom(
                id=s["id"],
                description=s.get("description", ""),
                affected_parts=list(s.get("affected_parts", [])),
                profile=EnvironmentalProfile.from_properties(s.get("profile")),
            )
            disease.symptom_ids.append(s["id"])
        for cm in d.get("control_methods", []):
            method = ControlMethod(
                id=cm["id"],
                method=cm.get("method", ""),
                treatment_status=cm.get("treatment_status", ""),
                product_name=cm.get("product_name", ""),
                description=cm.get("description"),
                active_ingredient=cm.get("active_ingredient"),
            )
            for t in cm.get("treatments", []):
                guidelines_data = t.get("guidelines") or {}
                graph.treatments[t["id"]] = Treatment(
                    id=t["id"],
                    name=t.get("name", ""),
                    cost=to_decimal(t.get("cost")),
                    effectiveness=t.get("effectiveness"),
                    environment_impact=t.get("environment_impact"),
                    impact=t.get("impact"),
                    condition=t.get("condition"),
                    safety_measures=[guidelines_data["safety_measures"]] if "safety_measures" in guidelines_data else [],
                    instructions=[guidelines_data["instruction"]] if "instruction" in guidelines_data else [],
                    application_frequency=(
                        [guidelines_data["application_frequency"]]
                        if "application_frequency" in guidelines_data else []
                    ),
                )
                method.treatment_ids.append(t["id"])
            graph.control_methods[cm["id"]] = method
            disease.control_method_ids.append(cm["id"])
        graph.diseases[disease.id] = disease

    for g in GENERAL_GUIDELINES if guidelines is None else guidelines:
        graph.guidelines.append(GeneralGuideline(
            id=g["id"], description=g.get("description"), guideline=g.get("guideline"),
        ))

    return graph
