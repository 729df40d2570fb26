"""SQL for catalog sections."""

SELECT_SECTIONS = """
    SELECT s.id, s.name, s.description, s.status, s.owner_id, u.username AS owner,
           s.created_at, s.updated_at,
           (SELECT COUNT(*) FROM section_products sp WHERE sp.section_id = s.id) AS product_count
    FROM catalog_sections s
    LEFT JOIN users u ON u.id = s.owner_id
    WHERE (? IS NULL OR s.owner_id = ?)
    ORDER BY s.name
"""

SELECT_SECTION = """
    SELECT id, name, description, status, owner_id FROM catalog_sections WHERE id = ?
"""

SECTION_NAME_TAKEN = """
    SELECT id FROM catalog_sections WHERE LOWER(name) = LOWER(?) AND (? IS NULL OR id <> ?)
"""

INSERT_SECTION = """
    INSERT INTO catalog_sections (name, description, owner_id, status, created_by)
    VALUES (?, ?, ?, ?, ?)
"""

SELECT_SECTION_PRODUCT_IDS = "SELECT product_id FROM section_products WHERE section_id = ?"

DELETE_SECTION = "DELETE FROM catalog_sections WHERE id = ?"
