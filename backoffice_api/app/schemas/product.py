"""
Pydantic models for product payloads.

Field-level business rules (minimum lengths, uniqueness, owner
existence) are checked by ``ProductService`` so that every problem in
a create request is reported together.  The models only enforce
types.
"""

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field

from .base import CamelModel


class TranslationData(CamelModel):
    name: str = Field("", examples=["Office chair"])
    short_desc: str = Field("", examples=["Ergonomic chair with lumbar support"])
    long_desc: Optional[str] = None
    tech_specs: Optional[Dict[str, Any]] = None


class ProductTranslations(BaseModel):
    en: Optional[TranslationData] = None
    ru: Optional[TranslationData] = None


class ProductVisibility(CamelModel):
    is_visible_owner: Optional[bool] = None
    is_visible_groups: Optional[bool] = None
    is_visible_tech_specs: Optional[bool] = None
    is_visible_long_description: Optional[bool] = None


class ProductCreate(CamelModel):
    product_code: Optional[str] = Field(None, examples=["CHAIR-001"])
    translation_key: Optional[str] = Field(None, examples=["products.chair001"])
    owner: Optional[str] = Field(None, description="Username of the product owner", examples=["jdoe"])
    specialists_groups: List[str] = Field(default_factory=list, description="Group names")
    translations: Optional[ProductTranslations] = None
    status_code: Optional[str] = Field(None, examples=["draft"])
    can_be_option: bool = False
    option_only: bool = False
    visibility: Optional[ProductVisibility] = None


class ProductUpdate(CamelModel):
    """Partial update.  Fields left out of the body are not touched."""

    product_id: int
    product_code: Optional[str] = None
    translation_key: Optional[str] = None
    owner: Optional[str] = None
    specialists_groups: Optional[List[str]] = None
    translations: Optional[ProductTranslations] = None
    status_code: Optional[str] = None
    can_be_option: Optional[bool] = None
    option_only: Optional[bool] = None
    visibility: Optional[ProductVisibility] = None


class DeleteProductsRequest(CamelModel):
    product_ids: List[int] = Field(..., examples=[[1, 2]])


class AssignProductOwnerRequest(CamelModel):
    product_ids: List[int] = Field(..., examples=[[1, 2]])
    new_owner_username: str = Field(..., examples=["jdoe"])


class PairItem(CamelModel):
    option_product_id: int
    is_required: bool = False
    units_count: Optional[int] = None


class PairsWriteRequest(CamelModel):
    main_product_id: int
    pairs: List[PairItem] = Field(default_factory=list)


class PairsReadRequest(CamelModel):
    main_product_id: int
    mode: Literal["records", "ids", "exists"] = "records"
    option_product_ids: Optional[List[int]] = None


class PairsDeleteRequest(CamelModel):
    main_product_id: int
    all_pairs: bool = Field(False, alias="all")
    selected_option_ids: Optional[List[int]] = None


class RegionBinding(BaseModel):
    region_id: int
    category_id: Optional[int] = None


class ProductRegionsUpdate(BaseModel):
    regions: List[RegionBinding] = Field(default_factory=list)


class SectionsPublishRequest(CamelModel):
    product_id: int
    section_ids: List[int] = Field(default_factory=list)
