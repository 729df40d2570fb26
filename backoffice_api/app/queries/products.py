"""SQL for products, translations, ownership, regions and publication."""

# Owner role OR active membership in a group bound to the product.
PRODUCT_ACCESS_CONDITION = """
    (EXISTS (SELECT 1 FROM product_users pu
              WHERE pu.product_id = {product} AND pu.user_id = ? AND pu.role_type = 'owner')
     OR EXISTS (SELECT 1 FROM product_groups pg
                JOIN group_members gm ON gm.group_id = pg.group_id AND gm.is_active = 1
                WHERE pg.product_id = {product} AND gm.user_id = ?))
"""

CHECK_PRODUCT_ACCESS = (
    "SELECT " + PRODUCT_ACCESS_CONDITION.format(product="?") + " AS has_access"
)

SELECT_PRODUCT = """
    SELECT id, product_code, translation_key, status_code, can_be_option, option_only,
           is_published, is_visible_owner, is_visible_groups, is_visible_tech_specs,
           is_visible_long_description, created_by, created_at, updated_by, updated_at
    FROM products
    WHERE id = ?
"""

SELECT_PRODUCTS_BY_IDS = """
    SELECT id, product_code
    FROM products
    WHERE id IN ({ids})
"""

PRODUCT_CODE_TAKEN = """
    SELECT id FROM products WHERE LOWER(product_code) = LOWER(?) AND (? IS NULL OR id <> ?)
"""

TRANSLATION_KEY_TAKEN = """
    SELECT id FROM products WHERE LOWER(translation_key) = LOWER(?) AND (? IS NULL OR id <> ?)
"""

INSERT_PRODUCT = """
    INSERT INTO products (
        product_code, translation_key, status_code, can_be_option, option_only,
        is_published, is_visible_owner, is_visible_groups, is_visible_tech_specs,
        is_visible_long_description, created_by, updated_by
    )
    VALUES (?, ?, ?, ?, ?, 0, ?, ?, ?, ?, ?, ?)
"""

UPSERT_TRANSLATION = """
    INSERT INTO product_translations (
        product_id, language_code, name, short_desc, long_desc, tech_specs, created_by, updated_by
    )
    VALUES (?, ?, ?, ?, ?, ?, ?, ?)
    ON CONFLICT(product_id, language_code) DO UPDATE SET
        name = excluded.name,
        short_desc = excluded.short_desc,
        long_desc = excluded.long_desc,
        tech_specs = excluded.tech_specs,
        updated_by = excluded.updated_by,
        updated_at = CURRENT_TIMESTAMP
"""

SELECT_TRANSLATIONS = """
    SELECT language_code, name, short_desc, long_desc, tech_specs, updated_at
    FROM product_translations
    WHERE product_id = ?
    ORDER BY language_code
"""

SELECT_OWNER = """
    SELECT u.id, u.username
    FROM product_users pu
    JOIN users u ON u.id = pu.user_id
    WHERE pu.product_id = ? AND pu.role_type = 'owner'
"""

DELETE_OWNER = "DELETE FROM product_users WHERE product_id = ? AND role_type = 'owner'"

INSERT_OWNER = """
    INSERT INTO product_users (product_id, user_id, role_type, created_by)
    VALUES (?, ?, 'owner', ?)
"""

SELECT_SPECIALIST_GROUPS = """
    SELECT g.id, g.name
    FROM product_groups pg
    JOIN org_groups g ON g.id = pg.group_id
    WHERE pg.product_id = ? AND pg.role_type = 'product_specialists'
    ORDER BY g.name
"""

DELETE_SPECIALIST_GROUPS = """
    DELETE FROM product_groups WHERE product_id = ? AND role_type = 'product_specialists'
"""

INSERT_SPECIALIST_GROUP = """
    INSERT INTO product_groups (product_id, group_id, role_type, created_by)
    VALUES (?, ?, 'product_specialists', ?)
"""

DELETE_PRODUCT = "DELETE FROM products WHERE id = ?"

TOUCH_PRODUCT = """
    UPDATE products SET updated_by = ?, updated_at = CURRENT_TIMESTAMP WHERE id = ?
"""

# is_published mirrors "at least one section binding exists".
REFRESH_IS_PUBLISHED = """
    UPDATE products
    SET is_published = EXISTS (SELECT 1 FROM section_products sp WHERE sp.product_id = products.id)
    WHERE id = ?
"""

PRODUCT_LIST_FROM = """
    FROM products p
    LEFT JOIN product_users pu ON pu.product_id = p.id AND pu.role_type = 'owner'
    LEFT JOIN users ou ON ou.id = pu.user_id
    LEFT JOIN product_translations t ON t.product_id = p.id AND t.language_code = 'en'
"""

SELECT_PRODUCTS_PAGE = """
    SELECT p.id, p.product_code, p.translation_key, p.status_code, p.is_published,
           p.can_be_option, p.option_only, p.is_visible_owner, p.is_visible_groups,
           p.is_visible_tech_specs, p.is_visible_long_description,
           p.created_at, p.updated_at, ou.username AS owner, t.name AS name
    {from_clause}
    {where_clause}
    ORDER BY {order_by} {direction}, p.id
    LIMIT ? OFFSET ?
"""

COUNT_PRODUCTS = """
    SELECT COUNT(*) AS total
    {from_clause}
    {where_clause}
"""

SELECT_OPTION_PRODUCTS = """
    SELECT p.id, p.product_code, p.status_code, t.name AS name
    FROM products p
    LEFT JOIN product_translations t ON t.product_id = p.id AND t.language_code = 'en'
    WHERE p.can_be_option = 1
      AND (? IS NULL OR LOWER(p.product_code) LIKE LOWER(?) OR LOWER(COALESCE(t.name, '')) LIKE LOWER(?))
    ORDER BY p.product_code
    LIMIT ?
"""

SELECT_PRODUCT_REGIONS = """
    SELECT r.id AS region_id, r.name AS region_name,
           pr.taxable_category_id AS category_id, tc.name AS category_name
    FROM regions r
    LEFT JOIN product_regions pr ON pr.region_id = r.id AND pr.product_id = ?
    LEFT JOIN taxable_categories tc ON tc.id = pr.taxable_category_id
    ORDER BY r.name
"""

SELECT_BOUND_REGIONS = """
    SELECT region_id, taxable_category_id
    FROM product_regions
    WHERE product_id = ? AND taxable_category_id IS NOT NULL
"""

SELECT_REGION_IDS = "SELECT id FROM regions WHERE id IN ({ids})"

SELECT_CATEGORY_IDS = "SELECT id FROM taxable_categories WHERE id IN ({ids})"

INSERT_PRODUCT_REGION = """
    INSERT INTO product_regions (product_id, region_id, taxable_category_id, created_by)
    VALUES (?, ?, ?, ?)
"""

UPDATE_PRODUCT_REGION = """
    UPDATE product_regions SET taxable_category_id = ? WHERE product_id = ? AND region_id = ?
"""

DELETE_PRODUCT_REGION = "DELETE FROM product_regions WHERE product_id = ? AND region_id = ?"

SELECT_PRODUCT_SECTION_IDS = """
    SELECT section_id FROM section_products WHERE product_id = ?
"""

SELECT_PUBLISHING_SECTIONS = """
    SELECT s.id, s.name, s.status, u.username AS owner,
           EXISTS (SELECT 1 FROM section_products sp
                    WHERE sp.section_id = s.id AND sp.product_id = ?) AS is_bound
    FROM catalog_sections s
    LEFT JOIN users u ON u.id = s.owner_id
    ORDER BY s.name
"""

SELECT_SECTION_IDS = "SELECT id FROM catalog_sections WHERE id IN ({ids})"

DELETE_SECTION_BINDING = "DELETE FROM section_products WHERE section_id = ? AND product_id = ?"

INSERT_SECTION_BINDING = """
    INSERT INTO section_products (section_id, product_id, published_by)
    VALUES (?, ?, ?)
"""
