#!/usr/bin/env python3
"""
Paddy Background Graph Seeder

Loads the diseases, locations, control methods, treatments and guidelines in
paddy_graph.py into Neo4j. Every statement uses MERGE, so running it twice
leaves the graph unchanged. Derived facts of existing sessions are dropped at
the end because they were computed against the previous background graph.

Usage:
    python -m paddy_advisor.seed.seed_paddy
"""

from ..config_loader import get_store_settings
from .paddy_graph import DISEASES, GENERAL_GUIDELINES, LOCATIONS


def seed_paddy_data(db_connection, diseases=None, locations=None, guidelines=None):
    """Seed the background graph through a Neo4jConnection."""
    diseases = DISEASES if diseases is None else diseases
    locations = LOCATIONS if locations is None else locations
    guidelines = GENERAL_GUIDELINES if guidelines is None else guidelines

    print("🌱 Seeding paddy background graph...")

    # =========================================================================
    # LOCATIONS
    # =========================================================================

    print("\n📍 Creating Locations...")
    db_connection.write([("""
        UNWIND $rows AS row
        MERGE (l:Location {id: row.id})
        SET l += row
    """, {"rows": locations})])
    print(f"   ✓ Created {len(locations)} locations")

    # =========================================================================
    # DISEASES, AGENTS, CONDITIONS
    # =========================================================================

    print("\n🦠 Creating Diseases...")
    for d in diseases:
        agent = d.get("agent") or {}
        env = d.get("environment") or {}
        statements = [("""
            MERGE (d:Disease {id: $id})
            SET d.name = $name, d.overall_symptoms = $overall_symptoms
        """, {"id": d["id"], "name": d["name"], "overall_symptoms": d.get("overall_symptoms")})]
        if agent.get("scientific_name"):
            statements.append(("""
                MATCH (d:Disease {id: $id})
                MERGE (a:Agent {scientific_name: $scientific_name})
                SET a.type = $type
                MERGE (d)-[:CAUSED_BY]->(a)
            """, {"id": d["id"], "scientific_name": agent["scientific_name"], "type": agent.get("type")}))
        if env:
            statements.append(("""
                MATCH (d:Disease {id: $id})
                MERGE (e:EnvironmentalCondition {id: $env_id})
                SET e += $env
                MERGE (d)-[:FAVOURED_BY]->(e)
            """, {"id": d["id"], "env_id": f"Env_{d['id']}", "env": dict(env)}))
        db_connection.write(statements)
        print(f"   ✓ Disease: {d['name']}")

        # Symptoms with their environmental profiles
        for s in d.get("symptoms", []):
            db_connection.write([("""
                MATCH (d:Disease {id: $disease_id})
                MERGE (s:Symptom {id: $id})
                SET s.description = $description, s.affected_parts = $affected_parts
                MERGE (d)-[:HAS_SYMPTOM]->(s)
                MERGE (p:EnvironmentalProfile {id: $profile_id})
                SET p += $profile
                MERGE (s)-[:AFFECTED_BY]->(p)
            """, {
                "disease_id": d["id"],
                "id": s["id"],
                "description": s.get("description", ""),
                "affected_parts": list(s.get("affected_parts", [])),
                "profile_id": f"Profile_{s['id']}",
                "profile": dict(s.get("profile") or {}),
            })])
        print(f"     ✓ {len(d.get('symptoms', []))} symptoms")

        # Control methods, treatments, guidelines
        for cm in d.get("control_methods", []):
            statements = [("""
                MATCH (d:Disease {id: $disease_id})
                MERGE (cm:ControlMethod {id: $id})
                SET cm.method = $method,
                    cm.treatment_status = $treatment_status,
                    cm.product_name = $product_name,
                    cm.description = $description,
                    cm.active_ingredient = $active_ingredient
                MERGE (d)-[:HAS_CONTROL_METHOD]->(cm)
            """, {
                "disease_id": d["id"],
                "id": cm["id"],
                "method": cm.get("method", ""),
                "treatment_status": cm.get("treatment_status", ""),
                "product_name": cm.get("product_name", ""),
                "description": cm.get("description"),
                "active_ingredient": cm.get("active_ingredient"),
            })]
            for t in cm.get("treatments", []):
                statements.append(("""
                    MATCH (cm:ControlMethod {id: $cm_id})
                    MERGE (t:Treatment {id: $id})
                    SET t.name = $name,
                        t.cost = $cost,
                        t.effectiveness = $effectiveness,
                        t.environment_impact = $environment_impact,
                        t.impact = $impact,
                        t.condition = $condition
                    MERGE (cm)-[:HAS_TREATMENT]->(t)
                """, {
                    "cm_id": cm["id"],
                    "id": t["id"],
                    "name": t.get("name", ""),
                    "cost": t.get("cost"),
                    "effectiveness": t.get("effectiveness"),
                    "environment_impact": t.get("environment_impact"),
                    "impact": t.get("impact"),
                    "condition": t.get("condition"),
                }))
                if t.get("guidelines"):
                    statements.append(("""
                        MATCH (t:Treatment {id: $treatment_id})
                        MERGE (g:UserGuideline {id: $id})
                        SET g += $guidelines
                        MERGE (t)-[:HAS_GUIDELINES]->(g)
                    """, {
                        "treatment_id": t["id"],
                        "id": f"Guide_{t['id']}",
                        "guidelines": dict(t["guidelines"]),
                    }))
            db_connection.write(statements)
            print(f"     ✓ Control method: {cm['id']} ({len(cm.get('treatments', []))} treatments)")

    # =========================================================================
    # GENERAL GUIDELINES
    # =========================================================================

    print("\n📋 Creating General Guidelines...")
    db_connection.write([("""
        UNWIND $rows AS row
        MERGE (g:GeneralGuideline {id: row.id})
        SET g += row
    """, {"rows": guidelines})])
    print(f"   ✓ Created {len(guidelines)} guidelines")

    # Derived facts were computed against the old background graph
    db_connection.get_session_graph_manager().retract_all_derived()
    print("\n🧹 Dropped derived facts of existing sessions")

    print("\n✅ Paddy background graph seeding complete!")


def main():
    """Main entry point."""
    from ..database import Neo4jConnection

    settings = get_store_settings()
    print(f"📊 Connecting to Neo4j at {settings.uri}...")
    db = Neo4jConnection(settings)
    try:
        seed_paddy_data(db)
    finally:
        db.close()


if __name__ == "__main__":
    main()
