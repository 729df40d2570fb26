"""SQL for product-option pairs."""

SELECT_PAIRS_BY_MAIN = """
    SELECT option_product_id, is_required, units_count
    FROM product_options
    WHERE main_product_id = ?
    ORDER BY option_product_id
"""

SELECT_PAIRS_BY_MAIN_AND_OPTIONS = """
    SELECT option_product_id, is_required, units_count
    FROM product_options
    WHERE main_product_id = ? AND option_product_id IN ({ids})
    ORDER BY option_product_id
"""

INSERT_PAIR = """
    INSERT INTO product_options (main_product_id, option_product_id, is_required, units_count, created_by)
    VALUES (?, ?, ?, ?, ?)
"""

UPDATE_PAIR = """
    UPDATE product_options
    SET is_required = ?, units_count = ?, updated_by = ?, updated_at = CURRENT_TIMESTAMP
    WHERE main_product_id = ? AND option_product_id = ?
"""

DELETE_PAIR = """
    DELETE FROM product_options WHERE main_product_id = ? AND option_product_id = ?
"""

DELETE_ALL_PAIRS = "DELETE FROM product_options WHERE main_product_id = ?"
