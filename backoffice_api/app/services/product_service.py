"""
Service layer for products.

Products carry a unique code and translation key, a status label,
per-language translations, one owner (``product_users`` with role
``owner``) and any number of specialist groups (``product_groups``).
Translations, ownership and bindings are removed by cascade when a
product is deleted.

With scope ``own`` a caller only sees and modifies products they can
access (see ``services.access``).  Batch operations report refused or
unknown ids per item instead of failing the whole request.
"""

import json
import logging
import math
import sqlite3
from typing import Any, Dict, List, Optional

from backoffice_api.app.core.db import PRODUCT_STATUSES, transaction
from backoffice_api.app.core.errors import ServiceError
from backoffice_api.app.core.security import AuthContext
from backoffice_api.app.core.sql import OMIT, UpdateField, build_update, placeholders
from backoffice_api.app.queries import org as org_queries
from backoffice_api.app.queries import products as product_queries
from backoffice_api.app.schemas.product import ProductCreate, ProductTranslations, ProductUpdate, TranslationData
from backoffice_api.app.services.access import can_access_product
from backoffice_api.app.services.audit_service import AuditTrail
from backoffice_api.app.services.validation import check_batch_size, require_ids, unique_ids

logger = logging.getLogger(__name__)

LANGUAGES = ("en", "ru")
MIN_NAME_LENGTH = 2
MIN_SHORT_DESC_LENGTH = 10

SORTABLE_COLUMNS = {
    "product_code": "p.product_code",
    "translation_key": "p.translation_key",
    "status_code": "p.status_code",
    "is_published": "p.is_published",
    "owner": "ou.username",
    "name": "t.name",
    "created_at": "p.created_at",
    "updated_at": "p.updated_at",
}

VISIBILITY_COLUMNS = (
    "is_visible_owner",
    "is_visible_groups",
    "is_visible_tech_specs",
    "is_visible_long_description",
)


def _translation_errors(translations: Optional[ProductTranslations]) -> List[str]:
    if translations is None:
        return ["Translations are required"]
    errors: List[str] = []
    complete = 0
    for language in LANGUAGES:
        data: Optional[TranslationData] = getattr(translations, language)
        if data is None or (not data.name and not data.short_desc):
            continue
        ok = True
        if len(data.name.strip()) < MIN_NAME_LENGTH:
            errors.append(f"{language.upper()} product name must be at least {MIN_NAME_LENGTH} characters")
            ok = False
        if len(data.short_desc.strip()) < MIN_SHORT_DESC_LENGTH:
            errors.append(
                f"{language.upper()} short description must be at least {MIN_SHORT_DESC_LENGTH} characters"
            )
            ok = False
        complete += ok
    if not complete and not errors:
        errors.append("At least one complete translation is required")
    return errors


def _write_translations(cursor: sqlite3.Cursor, product_id: int, translations: ProductTranslations, user_id: int) -> List[str]:
    written = []
    for language in LANGUAGES:
        data: Optional[TranslationData] = getattr(translations, language)
        if data is None or (not data.name and not data.short_desc):
            continue
        cursor.execute(
            product_queries.UPSERT_TRANSLATION,
            (
                product_id,
                language,
                data.name.strip(),
                data.short_desc.strip(),
                data.long_desc,
                json.dumps(data.tech_specs) if data.tech_specs is not None else None,
                user_id,
                user_id,
            ),
        )
        written.append(language)
    return written


def _resolve_groups(conn: sqlite3.Connection, names: List[str]) -> List[int]:
    names = unique_ids(name.strip() for name in names if name and name.strip())
    if not names:
        return []
    rows = conn.execute(org_queries.SELECT_GROUP_IDS_BY_NAMES.format(ids=placeholders(len(names))), tuple(names)).fetchall()
    found = {row["name"].lower(): row["id"] for row in rows}
    missing = [name for name in names if name.lower() not in found]
    if missing:
        raise ServiceError.validation(f"Specialist groups not found: {', '.join(missing)}", {"groups": missing})
    return [found[name.lower()] for name in names]


def _replace_specialists(cursor: sqlite3.Cursor, product_id: int, group_ids: List[int], user_id: int) -> None:
    cursor.execute(product_queries.DELETE_SPECIALIST_GROUPS, (product_id,))
    for group_id in group_ids:
        cursor.execute(product_queries.INSERT_SPECIALIST_GROUP, (product_id, group_id, user_id))


def _set_owner(cursor: sqlite3.Cursor, product_id: int, owner_id: int, user_id: int) -> None:
    cursor.execute(product_queries.DELETE_OWNER, (product_id,))
    cursor.execute(product_queries.INSERT_OWNER, (product_id, owner_id, user_id))


def _integrity_error(exc: sqlite3.IntegrityError) -> ServiceError:
    text = str(exc)
    if "CHECK constraint" in text:
        return ServiceError.validation(f"Invalid status code; allowed: {', '.join(PRODUCT_STATUSES)}")
    if "product_code" in text:
        return ServiceError.unique("Product code already exists")
    if "translation_key" in text:
        return ServiceError.unique("Translation key already exists")
    return ServiceError.unique("Product violates a uniqueness constraint", {"error": text})


def _product_dict(row: sqlite3.Row) -> Dict[str, Any]:
    product = dict(row)
    for column in ("can_be_option", "option_only", "is_published", *VISIBILITY_COLUMNS):
        if column in product:
            product[column] = bool(product[column])
    return product


class ProductService:
    """Service for product CRUD, listing and ownership."""

    @classmethod
    async def list_statuses(cls) -> Dict[str, Any]:
        return {"success": True, "statuses": [{"status_code": status} for status in PRODUCT_STATUSES]}

    @classmethod
    async def list_products(
        cls,
        conn: sqlite3.Connection,
        actor: AuthContext,
        page: int = 1,
        items_per_page: int = 20,
        search_query: Optional[str] = None,
        sort_by: str = "product_code",
        sort_desc: bool = False,
        published_filter: Optional[str] = None,
        status_filter: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Return one page of products.

        ``published_filter`` accepts ``published`` / ``unpublished``;
        ``status_filter`` one of the status labels.  With scope ``own``
        only accessible products are listed and counted.
        """
        conditions: List[str] = []
        params: List[Any] = []
        if search_query and search_query.strip():
            pattern = f"%{search_query.strip()}%"
            conditions.append(
                "(LOWER(p.product_code) LIKE LOWER(?) OR LOWER(p.translation_key) LIKE LOWER(?)"
                " OR LOWER(COALESCE(t.name, '')) LIKE LOWER(?))"
            )
            params.extend([pattern, pattern, pattern])
        if published_filter == "published":
            conditions.append("p.is_published = 1")
        elif published_filter == "unpublished":
            conditions.append("p.is_published = 0")
        if status_filter:
            conditions.append("p.status_code = ?")
            params.append(status_filter)
        if actor.is_own_scope:
            conditions.append(product_queries.PRODUCT_ACCESS_CONDITION.format(product="p.id"))
            params.extend([actor.user_id, actor.user_id])

        where_clause = "WHERE " + " AND ".join(conditions) if conditions else ""
        order_by = SORTABLE_COLUMNS.get(sort_by, SORTABLE_COLUMNS["product_code"])
        total = conn.execute(
            product_queries.COUNT_PRODUCTS.format(from_clause=product_queries.PRODUCT_LIST_FROM, where_clause=where_clause),
            tuple(params),
        ).fetchone()["total"]
        rows = conn.execute(
            product_queries.SELECT_PRODUCTS_PAGE.format(
                from_clause=product_queries.PRODUCT_LIST_FROM,
                where_clause=where_clause,
                order_by=order_by,
                direction="DESC" if sort_desc else "ASC",
            ),
            (*params, items_per_page, (page - 1) * items_per_page),
        ).fetchall()
        return {
            "success": True,
            "message": "Products fetched successfully",
            "data": {
                "products": [_product_dict(row) for row in rows],
                "pagination": {
                    "totalItems": total,
                    "totalPages": math.ceil(total / items_per_page) if total else 0,
                    "currentPage": page,
                    "itemsPerPage": items_per_page,
                },
            },
        }

    @classmethod
    async def list_option_products(cls, conn: sqlite3.Connection, search: Optional[str] = None, limit: int = 50) -> Dict[str, Any]:
        pattern = f"%{search.strip()}%" if search and search.strip() else None
        rows = conn.execute(product_queries.SELECT_OPTION_PRODUCTS, (pattern, pattern, pattern, limit)).fetchall()
        return {"success": True, "options": [dict(row) for row in rows]}

    @classmethod
    async def fetch_product(cls, conn: sqlite3.Connection, product_id: int, actor: Optional[AuthContext] = None) -> Dict[str, Any]:
        """Return the product with translations, owner and specialist groups."""
        row = conn.execute(product_queries.SELECT_PRODUCT, (product_id,)).fetchone()
        if not row:
            raise ServiceError.not_found("Product not found", {"productId": product_id})
        if actor is not None and not can_access_product(conn, actor, product_id):
            raise ServiceError.permission("Access denied: you can only view your own products")
        translations = []
        for tr in conn.execute(product_queries.SELECT_TRANSLATIONS, (product_id,)).fetchall():
            item = dict(tr)
            item["tech_specs"] = json.loads(item["tech_specs"]) if item["tech_specs"] else None
            translations.append(item)
        owner = conn.execute(product_queries.SELECT_OWNER, (product_id,)).fetchone()
        groups = conn.execute(product_queries.SELECT_SPECIALIST_GROUPS, (product_id,)).fetchall()
        return {
            "success": True,
            "message": "Product fetched successfully",
            "data": {
                "product": _product_dict(row),
                "translations": translations,
                "owner": owner["username"] if owner else None,
                "specialistsGroups": [group["name"] for group in groups],
                "statuses": [{"status_code": status} for status in PRODUCT_STATUSES],
            },
        }

    @classmethod
    async def create_product(cls, conn: sqlite3.Connection, data: ProductCreate, actor: AuthContext) -> Dict[str, Any]:
        """Create a product with translations, owner and specialist groups.

        All validation problems are collected and reported together,
        joined by ``"; "``.  The inserts run in one transaction; a
        failing step rolls back everything and its own message is
        returned to the caller.
        """
        trail = AuditTrail(conn, actor.user_id, "products.create", "product")
        try:
            errors: List[str] = []
            code = (data.product_code or "").strip()
            key = (data.translation_key or "").strip()
            if not code:
                errors.append("Product code is required")
            elif conn.execute(product_queries.PRODUCT_CODE_TAKEN, (code, None, None)).fetchone():
                errors.append("Product with this code already exists")
            if not key:
                errors.append("Translation key is required")
            elif conn.execute(product_queries.TRANSLATION_KEY_TAKEN, (key, None, None)).fetchone():
                errors.append("Product with this translation key already exists")
            owner = None
            if not data.owner:
                errors.append("Owner is required")
            else:
                owner = conn.execute(org_queries.SELECT_USER_BY_USERNAME, (data.owner,)).fetchone()
                if not owner:
                    errors.append("Owner user does not exist")
            if data.status_code is not None and data.status_code not in PRODUCT_STATUSES:
                errors.append(f"Invalid status code; allowed: {', '.join(PRODUCT_STATUSES)}")
            errors.extend(_translation_errors(data.translations))
            if errors:
                raise ServiceError.validation("; ".join(errors), {"errors": errors})
            group_ids = _resolve_groups(conn, data.specialists_groups)

            visibility = data.visibility.model_dump() if data.visibility else {}
            with transaction(conn) as cursor:
                cursor.execute(
                    product_queries.INSERT_PRODUCT,
                    (
                        code,
                        key,
                        data.status_code or "draft",
                        data.can_be_option,
                        data.option_only,
                        *(bool(visibility.get(column)) for column in VISIBILITY_COLUMNS),
                        actor.user_id,
                        actor.user_id,
                    ),
                )
                product_id = cursor.lastrowid
                trail.object_id = product_id
                languages = _write_translations(cursor, product_id, data.translations, actor.user_id)
                _set_owner(cursor, product_id, owner["id"], actor.user_id)
                _replace_specialists(cursor, product_id, group_ids, actor.user_id)
                await trail.change("added", {"productCode": code, "languages": languages, "owner": owner["username"]})

            await trail.success({"productCode": code})
            logger.info("Product %s (%s) created", product_id, code)
            return {
                "success": True,
                "message": "Product created successfully",
                "data": {"id": product_id, "productCode": code, "translationKey": key},
            }
        except ServiceError as exc:
            await trail.failure(exc)
            raise
        except sqlite3.IntegrityError as exc:
            error = _integrity_error(exc)
            await trail.failure(error)
            raise error from exc
        except Exception as exc:
            logger.exception("Failed to create product")
            error = ServiceError.internal("Failed to create product", {"error": str(exc)})
            await trail.failure(error)
            raise error from exc

    @classmethod
    async def update_product(cls, conn: sqlite3.Connection, data: ProductUpdate, actor: AuthContext) -> Dict[str, Any]:
        """Apply a partial update.

        Only fields present in the request body are written; the
        ``updated_by``/``updated_at`` stamps are always set.  Product
        columns cannot be set to null.  Uniqueness of code and
        translation key is checked against other products.
        """
        product_id = data.product_id
        provided = data.model_fields_set
        trail = AuditTrail(conn, actor.user_id, "products.update", "product", product_id)
        try:
            if not conn.execute(product_queries.SELECT_PRODUCT, (product_id,)).fetchone():
                raise ServiceError.not_found("Product not found", {"productId": product_id})
            if not can_access_product(conn, actor, product_id):
                raise ServiceError.permission("Access denied: you can only update your own products")

            def value(name: str):
                if name not in provided:
                    return OMIT
                current = getattr(data, name)
                if current is None:
                    raise ServiceError.validation(f"{name} cannot be null")
                return current.strip() if isinstance(current, str) else current

            fields = [
                UpdateField("product_code", value("product_code")),
                UpdateField("translation_key", value("translation_key")),
                UpdateField("status_code", value("status_code")),
                UpdateField("can_be_option", value("can_be_option")),
                UpdateField("option_only", value("option_only")),
            ]
            if "visibility" in provided and data.visibility is not None:
                flags = data.visibility.model_fields_set
                for column in VISIBILITY_COLUMNS:
                    flag = getattr(data.visibility, column)
                    fields.append(UpdateField(column, flag if column in flags and flag is not None else OMIT))
            fields.append(UpdateField("updated_by", actor.user_id))
            fields.append(UpdateField("updated_at", expression="CURRENT_TIMESTAMP"))

            code = fields[0].value
            if code is not OMIT:
                if not code:
                    raise ServiceError.validation("Product code is required")
                if conn.execute(product_queries.PRODUCT_CODE_TAKEN, (code, product_id, product_id)).fetchone():
                    raise ServiceError.unique("Product code already exists")
            key = fields[1].value
            if key is not OMIT:
                if not key:
                    raise ServiceError.validation("Translation key is required")
                if conn.execute(product_queries.TRANSLATION_KEY_TAKEN, (key, product_id, product_id)).fetchone():
                    raise ServiceError.unique("Translation key already exists")
            status_code = fields[2].value
            if status_code is not OMIT and status_code not in PRODUCT_STATUSES:
                raise ServiceError.validation(f"Invalid status code; allowed: {', '.join(PRODUCT_STATUSES)}")

            owner = None
            if data.owner is not None:
                owner = conn.execute(org_queries.SELECT_USER_BY_USERNAME, (data.owner,)).fetchone()
                if not owner:
                    raise ServiceError.validation("Owner user does not exist")
            group_ids = _resolve_groups(conn, data.specialists_groups) if data.specialists_groups is not None else None
            if data.translations is not None:
                errors = _translation_errors(data.translations)
                if errors:
                    raise ServiceError.validation("; ".join(errors), {"errors": errors})

            changed = sorted(name for name in provided if name != "product_id")
            with transaction(conn) as cursor:
                sql, params = build_update("products", fields, [("id", product_id)])
                cursor.execute(sql, params)
                if data.translations is not None:
                    _write_translations(cursor, product_id, data.translations, actor.user_id)
                if owner is not None:
                    _set_owner(cursor, product_id, owner["id"], actor.user_id)
                if group_ids is not None:
                    _replace_specialists(cursor, product_id, group_ids, actor.user_id)
                await trail.change("changed", {"fields": changed})

            await trail.success({"fields": changed})
            logger.info("Product %s updated: %s", product_id, ", ".join(changed))
            result = await cls.fetch_product(conn, product_id)
            result["message"] = "Product updated successfully"
            return result
        except ServiceError as exc:
            await trail.failure(exc)
            raise
        except sqlite3.IntegrityError as exc:
            error = _integrity_error(exc)
            await trail.failure(error)
            raise error from exc
        except Exception as exc:
            logger.exception("Failed to update product %s", product_id)
            error = ServiceError.internal("Failed to update product", {"error": str(exc)})
            await trail.failure(error)
            raise error from exc

    @classmethod
    async def delete_products(cls, conn: sqlite3.Connection, product_ids: List[int], actor: AuthContext) -> Dict[str, Any]:
        """Delete products; unknown or inaccessible ids are reported per item."""
        trail = AuditTrail(conn, actor.user_id, "products.delete", "product")
        try:
            requested = unique_ids(product_ids)
            require_ids(requested, "At least one product ID is required")
            check_batch_size(requested, "Product IDs")

            deleted: List[Dict[str, Any]] = []
            errors: List[Dict[str, Any]] = []
            with transaction(conn) as cursor:
                for product_id in requested:
                    row = cursor.execute(product_queries.SELECT_PRODUCT, (product_id,)).fetchone()
                    if not row:
                        errors.append({"id": product_id, "error": "Product not found or already deleted"})
                        continue
                    if not can_access_product(conn, actor, product_id):
                        errors.append({"id": product_id, "error": "Access denied: you can only delete your own products"})
                        continue
                    cursor.execute(product_queries.DELETE_PRODUCT, (product_id,))
                    deleted.append({"id": product_id, "product_code": row["product_code"]})
                if deleted:
                    await trail.change("removed", {"products": deleted})

            await trail.success({"totalDeleted": len(deleted), "totalErrors": len(errors)})
            if not errors:
                message = f"Successfully deleted {len(deleted)} product(s)"
            else:
                message = f"Deleted {len(deleted)} of {len(requested)} product(s)"
            return {
                "success": True,
                "message": message,
                "data": {
                    "deletedProducts": deleted,
                    "errors": errors,
                    "totalRequested": len(requested),
                    "totalDeleted": len(deleted),
                    "totalErrors": len(errors),
                },
            }
        except ServiceError as exc:
            await trail.failure(exc)
            raise
        except Exception as exc:
            logger.exception("Failed to delete products")
            error = ServiceError.internal("Failed to delete products", {"error": str(exc)})
            await trail.failure(error)
            raise error from exc

    @classmethod
    async def assign_owner(
        cls, conn: sqlite3.Connection, product_ids: List[int], new_owner_username: str, actor: AuthContext
    ) -> Dict[str, Any]:
        """Make ``new_owner_username`` the single owner of each product.

        Products that do not exist or that the caller may not modify
        are reported per item; the rest are re-owned in one
        transaction.
        """
        trail = AuditTrail(conn, actor.user_id, "products.assign_owner", "product")
        try:
            requested = unique_ids(product_ids)
            require_ids(requested, "At least one product ID is required")
            check_batch_size(requested, "Product IDs")
            if not new_owner_username or not new_owner_username.strip():
                raise ServiceError.validation("New owner username is required")
            owner = conn.execute(org_queries.SELECT_USER_BY_USERNAME, (new_owner_username.strip(),)).fetchone()
            if not owner:
                raise ServiceError.not_found(f"Owner user not found: {new_owner_username}")
            rows = conn.execute(
                product_queries.SELECT_PRODUCTS_BY_IDS.format(ids=placeholders(len(requested))),
                tuple(requested),
            ).fetchall()
            codes = {row["id"]: row["product_code"] for row in rows}
            if not codes:
                raise ServiceError.not_found("None of the specified products were found")

            updated: List[Dict[str, Any]] = []
            errors: List[Dict[str, Any]] = []
            with transaction(conn) as cursor:
                for product_id in requested:
                    if product_id not in codes:
                        errors.append({"id": product_id, "error": "Product not found"})
                        continue
                    if not can_access_product(conn, actor, product_id):
                        errors.append(
                            {"id": product_id, "error": "Access denied: you can only change owner for your own products"}
                        )
                        continue
                    _set_owner(cursor, product_id, owner["id"], actor.user_id)
                    cursor.execute(product_queries.TOUCH_PRODUCT, (actor.user_id, product_id))
                    updated.append({"id": product_id, "product_code": codes[product_id]})
                if updated:
                    await trail.change("changed", {"products": updated, "newOwner": owner["username"]})

            await trail.success({"totalUpdated": len(updated), "totalErrors": len(errors)})
            if not errors:
                message = f"Owner assigned successfully to {len(updated)} product(s)"
            else:
                message = f"Owner assigned to {len(updated)} of {len(requested)} products"
            return {
                "success": bool(updated),
                "message": message,
                "data": {
                    "updatedProducts": updated,
                    "errors": errors,
                    "totalRequested": len(requested),
                    "totalUpdated": len(updated),
                    "totalErrors": len(errors),
                },
            }
        except ServiceError as exc:
            await trail.failure(exc)
            raise
        except Exception as exc:
            logger.exception("Failed to assign product owner")
            error = ServiceError.internal("Failed to assign product owner", {"error": str(exc)})
            await trail.failure(error)
            raise error from exc
