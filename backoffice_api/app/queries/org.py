"""SQL for users, groups and group membership."""

SELECT_USER_BY_ID = """
    SELECT id, uuid, username, email, first_name, last_name, account_status, role_id
    FROM users
    WHERE id = ?
"""

SELECT_USER_BY_USERNAME = """
    SELECT id, uuid, username, email, first_name, last_name, account_status, role_id, password
    FROM users
    WHERE username = ?
"""

SELECT_USERS_BY_IDS = """
    SELECT id, username, account_status
    FROM users
    WHERE id IN ({ids})
"""

SELECT_GROUP_BY_ID = """
    SELECT id, name, status, owner_id, is_system
    FROM org_groups
    WHERE id = ?
"""

SELECT_GROUPS_BY_IDS = """
    SELECT id, name, owner_id, is_system
    FROM org_groups
    WHERE id IN ({ids})
"""

SELECT_GROUP_IDS_BY_NAMES = """
    SELECT id, name
    FROM org_groups
    WHERE name IN ({ids})
"""

ACTIVE_MEMBERS_AMONG_USERS = """
    SELECT user_id
    FROM group_members
    WHERE group_id = ? AND is_active = 1 AND user_id IN ({ids})
"""

ACTIVE_GROUPS_AMONG_GROUPS = """
    SELECT group_id
    FROM group_members
    WHERE user_id = ? AND is_active = 1 AND group_id IN ({ids})
"""

# Re-adding a former member reactivates the existing row.
UPSERT_MEMBERSHIP = """
    INSERT INTO group_members (group_id, user_id, is_active, joined_at, added_by, left_at)
    VALUES (?, ?, 1, CURRENT_TIMESTAMP, ?, NULL)
    ON CONFLICT(group_id, user_id) DO UPDATE SET
        is_active = 1,
        joined_at = CURRENT_TIMESTAMP,
        added_by = excluded.added_by,
        left_at = NULL
"""

DEACTIVATE_MEMBERSHIP = """
    UPDATE group_members
    SET is_active = 0, left_at = CURRENT_TIMESTAMP
    WHERE group_id = ? AND user_id = ? AND is_active = 1
"""

SELECT_GROUP_MEMBERS = """
    SELECT u.id, u.uuid, u.username, u.email, u.first_name, u.last_name,
           u.account_status, gm.joined_at, gm.added_by
    FROM group_members gm
    JOIN users u ON u.id = gm.user_id
    WHERE gm.group_id = ? AND gm.is_active = 1
    ORDER BY u.username
"""

# Both group list queries take (pattern, pattern, owner, owner); a NULL
# owner lists every group.
COUNT_GROUPS = """
    SELECT COUNT(*) AS total
    FROM org_groups g
    WHERE (? IS NULL OR LOWER(g.name) LIKE LOWER(?))
      AND (? IS NULL OR g.owner_id = ?)
"""

SELECT_GROUPS_PAGE = """
    SELECT g.id, g.name, g.status, g.is_system, g.owner_id, u.username AS owner_username,
           g.description, g.created_at,
           (SELECT COUNT(*) FROM group_members gm
             WHERE gm.group_id = g.id AND gm.is_active = 1) AS member_count
    FROM org_groups g
    LEFT JOIN users u ON u.id = g.owner_id
    WHERE (? IS NULL OR LOWER(g.name) LIKE LOWER(?))
      AND (? IS NULL OR g.owner_id = ?)
    ORDER BY g.name
    LIMIT ? OFFSET ?
"""

SELECT_GROUP_DETAILS = """
    SELECT g.id, g.name, g.status, g.is_system, g.owner_id, u.username AS owner_username,
           g.description, g.email, g.created_by, g.created_at, g.modified_by, g.modified_at,
           (SELECT COUNT(*) FROM group_members gm
             WHERE gm.group_id = g.id AND gm.is_active = 1) AS member_count
    FROM org_groups g
    LEFT JOIN users u ON u.id = g.owner_id
    WHERE g.id = ?
"""

# Takes (name, group_id, group_id); a NULL id checks every group.
GROUP_NAME_TAKEN = """
    SELECT 1 FROM org_groups
    WHERE name = ? AND (? IS NULL OR id <> ?)
"""

INSERT_GROUP = """
    INSERT INTO org_groups (name, status, owner_id, description, email, created_by)
    VALUES (?, ?, ?, ?, ?, ?)
"""

DELETE_GROUP = "DELETE FROM org_groups WHERE id = ?"

SELECT_USER_DETAILS = """
    SELECT id, uuid, username, email, first_name, last_name, account_status,
           is_staff, role_id, created_by, created_at, updated_at
    FROM users
    WHERE id = ?
"""

SELECT_USER_GROUPS = """
    SELECT g.id, g.name, gm.joined_at
    FROM group_members gm
    JOIN org_groups g ON g.id = gm.group_id
    WHERE gm.user_id = ? AND gm.is_active = 1
    ORDER BY g.name
"""

# Takes (value, user_id, user_id); both columns compare without case.
USERNAME_TAKEN = """
    SELECT 1 FROM users
    WHERE username = ? AND (? IS NULL OR id <> ?)
"""

EMAIL_TAKEN = """
    SELECT 1 FROM users
    WHERE email = ? AND (? IS NULL OR id <> ?)
"""

# A search matches username, email, first or last name, case-insensitively.
USER_SEARCH_CONDITION = """
    (LOWER(u.username) LIKE LOWER(?)
     OR LOWER(COALESCE(u.email, '')) LIKE LOWER(?)
     OR LOWER(COALESCE(u.first_name, '')) LIKE LOWER(?)
     OR LOWER(COALESCE(u.last_name, '')) LIKE LOWER(?))
"""

COUNT_USERS_MATCHING = """
    SELECT COUNT(*) AS total
    FROM users u
    WHERE {condition}
"""

SEARCH_USERS = """
    SELECT u.id, u.uuid, u.username, u.first_name, u.last_name
    FROM users u
    WHERE {condition}
    ORDER BY u.username
    LIMIT ?
"""

SELECT_USERS_PAGE = """
    SELECT u.id, u.uuid, u.username, u.email, u.first_name, u.last_name,
           u.account_status, u.is_staff, u.role_id, u.created_at
    FROM users u
    WHERE {condition}
    ORDER BY u.username
    LIMIT ? OFFSET ?
"""

DELETE_USER = "DELETE FROM users WHERE id = ?"
