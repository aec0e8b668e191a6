"""Background graph data and the Neo4j seeder."""
