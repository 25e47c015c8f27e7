from pydantic import BaseModel
from typing import Optional


class Organization(BaseModel):
    """An organization (row in `organizations`), used only as a mention target"""
    id: str
    name: str
    type: str  # See ORGANIZATION_TYPE_LABELS below
    tagline: Optional[str] = None
    image_url: Optional[str] = None
    slug: Optional[str] = None

    class Config:
        from_attributes = True
        coerce_numbers_to_str = True

    @property
    def mention_id(self) -> str:
        """Synthetic id that cannot collide with a profile id"""
        return f"{self.type}-{self.id}"

    @property
    def type_label(self) -> str:
        return ORGANIZATION_TYPE_LABELS.get(self.type, "Organization")


# Supported organization types
ORGANIZATION_TYPE_LABELS = {
    "nonprofit": "Nonprofit",
    "funder": "Funder",
    "foundation": "Foundation",
    "education": "Education",
    "healthcare": "Healthcare",
    "government": "Government",
    "religious": "Religious",
    "forprofit": "For-Profit",
    "for-profit": "For-Profit",
}
