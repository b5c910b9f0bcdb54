"""
Static catalog of health categories and their suggested doctor specialties.
"""

from typing import Dict, List, Optional

from teleconsult.domain.entities.category import CategoryEntry

_CATEGORY_DEFINITIONS = [
    (
        "General Medicine",
        "General health concerns, routine checkups, and common illnesses",
        ("General Practice", "Internal Medicine", "Family Medicine"),
    ),
    (
        "Cardiology",
        "Heart and cardiovascular system related issues",
        ("Cardiology", "Cardiovascular Surgery", "Interventional Cardiology"),
    ),
    (
        "Dermatology",
        "Skin, hair, and nail conditions",
        ("Dermatology", "Dermatopathology", "Cosmetic Dermatology"),
    ),
    (
        "Pediatrics",
        "Children's health and development",
        ("Pediatrics", "Pediatric Cardiology", "Pediatric Neurology", "Neonatology"),
    ),
    (
        "Orthopedics",
        "Bone, joint, muscle, and skeletal system issues",
        ("Orthopedics", "Sports Medicine", "Rheumatology", "Physical Medicine"),
    ),
    (
        "Neurology",
        "Brain, spinal cord, and nervous system disorders",
        ("Neurology", "Neurosurgery", "Neuropsychology", "Pain Management"),
    ),
    (
        "Psychiatry",
        "Mental health and psychological conditions",
        ("Psychiatry", "Psychology", "Addiction Medicine", "Child Psychiatry"),
    ),
    (
        "Gynecology",
        "Women's reproductive health and pregnancy",
        ("Gynecology", "Obstetrics", "Reproductive Endocrinology", "Maternal-Fetal Medicine"),
    ),
    (
        "Urology",
        "Urinary tract and male reproductive system",
        ("Urology", "Nephrology", "Andrology"),
    ),
    (
        "Ophthalmology",
        "Eye and vision related problems",
        ("Ophthalmology", "Optometry", "Retinal Surgery", "Corneal Surgery"),
    ),
    (
        "ENT",
        "Ear, nose, throat, and head/neck conditions",
        ("Otolaryngology", "Audiology", "Head and Neck Surgery"),
    ),
    (
        "Gastroenterology",
        "Digestive system and gastrointestinal disorders",
        ("Gastroenterology", "Hepatology", "Colorectal Surgery"),
    ),
    (
        "Pulmonology",
        "Respiratory system and lung conditions",
        ("Pulmonology", "Critical Care Medicine", "Sleep Medicine"),
    ),
    (
        "Endocrinology",
        "Hormonal and metabolic disorders",
        ("Endocrinology", "Diabetes Care", "Thyroid Disorders"),
    ),
    (
        "Emergency",
        "Urgent medical situations requiring immediate attention",
        ("Emergency Medicine", "Critical Care", "Trauma Surgery"),
    ),
    (
        "Other",
        "Other medical concerns not covered by specific categories",
        ("General Practice", "Internal Medicine"),
    ),
]

HEALTH_CATEGORIES: Dict[str, CategoryEntry] = {
    name: CategoryEntry(name=name, description=description, specialties=specialties)
    for name, description, specialties in _CATEGORY_DEFINITIONS
}


class CategoryCatalog:
    """Read-only lookup over the health categories.

    Lookups are exact and case-sensitive; unknown names never raise.
    """

    def __init__(self, categories: Optional[Dict[str, CategoryEntry]] = None) -> None:
        self._categories = dict(categories if categories is not None else HEALTH_CATEGORIES)

    def get_health_categories(self) -> List[CategoryEntry]:
        return list(self._categories.values())

    def get_category_names(self) -> List[str]:
        return list(self._categories.keys())

    def get_category(self, category_name: str) -> Optional[CategoryEntry]:
        return self._categories.get(category_name)

    def get_suggested_specialties(self, category_name: str) -> List[str]:
        entry = self._categories.get(category_name)
        return list(entry.specialties) if entry else []

    def has_category(self, category_name: str) -> bool:
        return category_name in self._categories
