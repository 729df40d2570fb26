"""
Service layer for product-option pairs.

A pair links a main product to an option product with two attributes:
``is_required`` and ``units_count``.  A required option needs a units
count between 1 and 100; an optional one must have none.  A product
is never paired with itself.  These rules are checked for the whole
request before any transaction opens.

``replace_pairs`` reconciles the stored pair set of a main product
with a target set: pairs missing from the target are removed, new ones
added and those whose attributes differ updated, all in one
transaction.
"""

import logging
import sqlite3
from typing import Any, Dict, List, Optional, Tuple

from backoffice_api.app.core.config import settings
from backoffice_api.app.core.db import transaction
from backoffice_api.app.core.errors import ServiceError
from backoffice_api.app.core.security import AuthContext
from backoffice_api.app.core.sql import placeholders
from backoffice_api.app.queries import pairs as pair_queries
from backoffice_api.app.queries import products as product_queries
from backoffice_api.app.schemas.product import PairItem
from backoffice_api.app.services.access import can_access_product
from backoffice_api.app.services.audit_service import AuditTrail
from backoffice_api.app.services.validation import check_batch_size, unique_ids

logger = logging.getLogger(__name__)

MIN_UNITS = 1
MAX_UNITS = 100

Attributes = Tuple[bool, Optional[int]]


def _join(ids) -> str:
    return ",".join(str(i) for i in ids)


def validate_pairs(main_product_id: int, pairs: List[PairItem]) -> Dict[int, Attributes]:
    """Check pair rules and return ``{option_id: (is_required, units_count)}``.

    Repeated option ids collapse to the last occurrence.
    """
    if len(pairs) > settings.batch_limit:
        raise ServiceError.validation(f"Pairs exceed limit {settings.batch_limit}")
    self_pairing = [p.option_product_id for p in pairs if p.option_product_id == main_product_id]
    if self_pairing:
        raise ServiceError.validation(
            f"Self-pairing not allowed for option ids: {_join(unique_ids(self_pairing))}",
            {"optionProductIds": unique_ids(self_pairing)},
        )
    target: Dict[int, Attributes] = {}
    for pair in pairs:
        if pair.is_required:
            if pair.units_count is None or not MIN_UNITS <= pair.units_count <= MAX_UNITS:
                raise ServiceError.validation(f"Invalid unitsCount for required option {pair.option_product_id}")
        elif pair.units_count is not None:
            raise ServiceError.validation(f"unitsCount must be null when not required for {pair.option_product_id}")
        target[pair.option_product_id] = (pair.is_required, pair.units_count)
    return target


def _pair_dict(row: sqlite3.Row) -> Dict[str, Any]:
    return {
        "optionProductId": row["option_product_id"],
        "isRequired": bool(row["is_required"]),
        "unitsCount": row["units_count"],
    }


def _stored_pairs(conn: sqlite3.Connection, main_product_id: int, option_ids: Optional[List[int]] = None) -> Dict[int, Attributes]:
    if option_ids is None:
        rows = conn.execute(pair_queries.SELECT_PAIRS_BY_MAIN, (main_product_id,)).fetchall()
    elif not option_ids:
        return {}
    else:
        rows = conn.execute(
            pair_queries.SELECT_PAIRS_BY_MAIN_AND_OPTIONS.format(ids=placeholders(len(option_ids))),
            (main_product_id, *option_ids),
        ).fetchall()
    return {row["option_product_id"]: (bool(row["is_required"]), row["units_count"]) for row in rows}


class PairsService:
    """Create, read, update, delete and reconcile option pairs."""

    @staticmethod
    def _check_main_product(conn: sqlite3.Connection, main_product_id: int, actor: AuthContext, verb: str) -> None:
        if not conn.execute(product_queries.SELECT_PRODUCT, (main_product_id,)).fetchone():
            raise ServiceError.not_found("Main product not found", {"mainProductId": main_product_id})
        if not can_access_product(conn, actor, main_product_id):
            raise ServiceError.permission(f"Access denied: you can only {verb} option pairs for your own products")

    @staticmethod
    def _check_options_exist(conn: sqlite3.Connection, option_ids: List[int]) -> None:
        if not option_ids:
            return
        rows = conn.execute(
            product_queries.SELECT_PRODUCTS_BY_IDS.format(ids=placeholders(len(option_ids))),
            tuple(option_ids),
        ).fetchall()
        found = {row["id"] for row in rows}
        missing = [option_id for option_id in option_ids if option_id not in found]
        if missing:
            raise ServiceError.validation(
                f"Option products not found: {_join(missing)}",
                {"optionProductIds": missing},
            )

    @classmethod
    async def create_pairs(
        cls, conn: sqlite3.Connection, main_product_id: int, pairs: List[PairItem], actor: AuthContext
    ) -> Dict[str, Any]:
        """Insert new pairs; any pair that already exists fails the call."""
        trail = AuditTrail(conn, actor.user_id, "products.pairs.create", "product", main_product_id)
        try:
            target = validate_pairs(main_product_id, pairs)
            if not target:
                return {"success": True, "createdCount": 0, "created": []}
            cls._check_main_product(conn, main_product_id, actor, "create")
            option_ids = list(target)
            cls._check_options_exist(conn, option_ids)

            with transaction(conn) as cursor:
                conflicts = sorted(_stored_pairs(conn, main_product_id, option_ids))
                if conflicts:
                    raise ServiceError.validation(
                        f"Conflict: pairs already exist for some option ids: {_join(conflicts)}",
                        {"optionProductIds": conflicts},
                    )
                for option_id, (is_required, units_count) in target.items():
                    cursor.execute(
                        pair_queries.INSERT_PAIR,
                        (main_product_id, option_id, is_required, units_count, actor.user_id),
                    )
                await trail.change("added", {"optionProductIds": option_ids})

            await trail.success({"createdCount": len(option_ids)})
            return {"success": True, "createdCount": len(option_ids), "created": option_ids}
        except ServiceError as exc:
            await trail.failure(exc)
            raise
        except Exception as exc:
            logger.exception("Failed to create pairs for product %s", main_product_id)
            error = ServiceError.internal("Failed to create option pairs", {"error": str(exc)})
            await trail.failure(error)
            raise error from exc

    @classmethod
    async def read_pairs(
        cls,
        conn: sqlite3.Connection,
        main_product_id: int,
        actor: AuthContext,
        mode: str = "records",
        option_product_ids: Optional[List[int]] = None,
    ) -> Dict[str, Any]:
        """Read pairs of a main product.

        ``records`` returns the pairs among ``option_product_ids``,
        ``ids`` every paired option id and ``exists`` a map telling
        which of ``option_product_ids`` are paired.
        """
        cls._check_main_product(conn, main_product_id, actor, "read")
        if mode == "ids":
            return {"success": True, "optionProductIds": sorted(_stored_pairs(conn, main_product_id))}
        if option_product_ids is None:
            raise ServiceError.validation(f"optionProductIds are required for mode={mode}")
        requested = unique_ids(option_product_ids)
        check_batch_size(requested, "Requested option ids")
        if mode == "records":
            if not requested:
                return {"success": True, "pairs": []}
            rows = conn.execute(
                pair_queries.SELECT_PAIRS_BY_MAIN_AND_OPTIONS.format(ids=placeholders(len(requested))),
                (main_product_id, *requested),
            ).fetchall()
            return {"success": True, "pairs": [_pair_dict(row) for row in rows]}
        found = _stored_pairs(conn, main_product_id, requested)
        return {"success": True, "existsMap": {str(option_id): option_id in found for option_id in requested}}

    @classmethod
    async def update_pairs(
        cls, conn: sqlite3.Connection, main_product_id: int, pairs: List[PairItem], actor: AuthContext
    ) -> Dict[str, Any]:
        """Change attributes of existing pairs.

        Every listed option must already be paired with the main
        product; otherwise nothing is written and the error lists the
        missing ids.  Only pairs whose attributes differ are written.
        """
        trail = AuditTrail(conn, actor.user_id, "products.pairs.update", "product", main_product_id)
        try:
            target = validate_pairs(main_product_id, pairs)
            if not target:
                return {"success": True, "updatedCount": 0, "updated": []}
            cls._check_main_product(conn, main_product_id, actor, "update")

            with transaction(conn) as cursor:
                current = _stored_pairs(conn, main_product_id, list(target))
                missing = [option_id for option_id in target if option_id not in current]
                if missing:
                    raise ServiceError.not_found(
                        f"Not found: some option ids do not have existing pairs: {_join(missing)}",
                        {"missingOptionIds": missing},
                    )
                changes = []
                for option_id, (is_required, units_count) in target.items():
                    old_required, old_units = current[option_id]
                    if (old_required, old_units) == (is_required, units_count):
                        continue
                    cursor.execute(
                        pair_queries.UPDATE_PAIR,
                        (is_required, units_count, actor.user_id, main_product_id, option_id),
                    )
                    changes.append(
                        {
                            "optionProductId": option_id,
                            "isRequired": {"old": old_required, "new": is_required},
                            "unitsCount": {"old": old_units, "new": units_count},
                        }
                    )
                if changes:
                    await trail.change("changed", {"changes": changes})

            updated = [change["optionProductId"] for change in changes]
            await trail.success({"updatedCount": len(updated)})
            return {"success": True, "updatedCount": len(updated), "updated": updated}
        except ServiceError as exc:
            await trail.failure(exc)
            raise
        except Exception as exc:
            logger.exception("Failed to update pairs for product %s", main_product_id)
            error = ServiceError.internal("Failed to update option pairs", {"error": str(exc)})
            await trail.failure(error)
            raise error from exc

    @classmethod
    async def delete_pairs(
        cls,
        conn: sqlite3.Connection,
        main_product_id: int,
        actor: AuthContext,
        delete_all: bool = False,
        selected_option_ids: Optional[List[int]] = None,
    ) -> Dict[str, Any]:
        """Delete all pairs of a main product or the selected ones."""
        mode = "all" if delete_all else "selected"
        trail = AuditTrail(conn, actor.user_id, "products.pairs.delete", "product", main_product_id)
        try:
            if not delete_all:
                if selected_option_ids is None:
                    raise ServiceError.validation("selectedOptionIds must be array when all=false")
                requested = unique_ids(selected_option_ids)
                if not requested:
                    return {"success": True, "mode": mode, "totalRequested": 0, "totalDeleted": 0, "deletedOptionIds": []}
                check_batch_size(requested, "selectedOptionIds")
            cls._check_main_product(conn, main_product_id, actor, "delete")

            with transaction(conn) as cursor:
                current = _stored_pairs(conn, main_product_id)
                if delete_all:
                    requested = sorted(current)
                    cursor.execute(pair_queries.DELETE_ALL_PAIRS, (main_product_id,))
                    deleted = requested
                else:
                    deleted = [option_id for option_id in requested if option_id in current]
                    for option_id in deleted:
                        cursor.execute(pair_queries.DELETE_PAIR, (main_product_id, option_id))
                if deleted:
                    await trail.change("removed", {"optionProductIds": deleted})

            missing = [option_id for option_id in requested if option_id not in deleted]
            result: Dict[str, Any] = {
                "success": True,
                "mode": mode,
                "totalRequested": len(requested),
                "totalDeleted": len(deleted),
                "deletedOptionIds": deleted,
            }
            if missing:
                result["missingOptionIds"] = missing
            await trail.success({"totalDeleted": len(deleted), "missingOptionIds": missing})
            return result
        except ServiceError as exc:
            await trail.failure(exc)
            raise
        except Exception as exc:
            logger.exception("Failed to delete pairs for product %s", main_product_id)
            error = ServiceError.internal("Failed to delete option pairs", {"error": str(exc)})
            await trail.failure(error)
            raise error from exc

    @classmethod
    async def replace_pairs(
        cls, conn: sqlite3.Connection, main_product_id: int, pairs: List[PairItem], actor: AuthContext
    ) -> Dict[str, Any]:
        """Make the stored pair set equal to ``pairs``.

        An empty list removes every pair of the main product.
        """
        trail = AuditTrail(conn, actor.user_id, "products.pairs.replace", "product", main_product_id)
        try:
            target = validate_pairs(main_product_id, pairs)
            cls._check_main_product(conn, main_product_id, actor, "update")
            cls._check_options_exist(conn, list(target))

            with transaction(conn) as cursor:
                current = _stored_pairs(conn, main_product_id)
                to_remove = sorted(set(current) - set(target))
                to_add = sorted(set(target) - set(current))
                to_update = sorted(
                    option_id for option_id in set(current) & set(target) if current[option_id] != target[option_id]
                )

                for option_id in to_remove:
                    cursor.execute(pair_queries.DELETE_PAIR, (main_product_id, option_id))
                for option_id in to_add:
                    is_required, units_count = target[option_id]
                    cursor.execute(
                        pair_queries.INSERT_PAIR,
                        (main_product_id, option_id, is_required, units_count, actor.user_id),
                    )
                for option_id in to_update:
                    is_required, units_count = target[option_id]
                    cursor.execute(
                        pair_queries.UPDATE_PAIR,
                        (is_required, units_count, actor.user_id, main_product_id, option_id),
                    )

                if to_remove:
                    await trail.change("removed", {"optionProductIds": to_remove})
                if to_add:
                    await trail.change("added", {"optionProductIds": to_add})
                if to_update:
                    await trail.change("changed", {"optionProductIds": to_update})

            await trail.success({"added": len(to_add), "removed": len(to_remove), "updated": len(to_update)})
            return {
                "success": True,
                "addedCount": len(to_add),
                "removedCount": len(to_remove),
                "updatedCount": len(to_update),
                "added": to_add,
                "removed": to_remove,
                "updated": to_update,
            }
        except ServiceError as exc:
            await trail.failure(exc)
            raise
        except Exception as exc:
            logger.exception("Failed to replace pairs for product %s", main_product_id)
            error = ServiceError.internal("Failed to replace option pairs", {"error": str(exc)})
            await trail.failure(error)
            raise error from exc
