"""
Derived voice metadata.

The upstream provider reports only name, language and engine per voice.
Category, gender and quality are derived here:

    category  celebrity list first (exact name), else language prefix, else "other"
    gender    curated first-name lists, female checked before male, else "unknown"
    quality   fixed engine table, anything unlisted is "medium"

Gender is a heuristic over the voice's first name, not provider data.
The lists are a data asset kept as-is, including names whose usual
gender differs from the list they sit in. The catalog takes any
GenderClassifier, so a better source can replace name_list_gender.
"""
from __future__ import annotations

from typing import Protocol

GENDER_MALE = "male"
GENDER_FEMALE = "female"
GENDER_UNKNOWN = "unknown"

QUALITY_HIGH = "high"
QUALITY_MEDIUM = "medium"
QUALITY_BASIC = "basic"

CATEGORY_CELEBRITY = "celebrity"
CATEGORY_OTHER = "other"

CELEBRITY_VOICES = frozenset({"mrbeast", "snoop", "presidential"})

# Checked in order; the prefix includes the trailing hyphen
LANGUAGE_CATEGORIES = (
    ("en-", "english"),
    ("es-", "spanish"),
    ("fr-", "french"),
    ("de-", "german"),
    ("it-", "italian"),
    ("pt-", "portuguese"),
    ("ru-", "russian"),
    ("ja-", "japanese"),
    ("ko-", "korean"),
    ("zh-", "chinese"),
    ("ar-", "arabic"),
    ("hi-", "hindi"),
    ("th-", "thai"),
    ("vi-", "vietnamese"),
)

FEMALE_NAMES = frozenset({
    "tasha", "lisa", "emily", "jenny", "aria", "joanna", "mary", "salli", "joey",
    "sonia", "amy", "libby", "natasha", "freya", "olivia", "ezinne", "leah",
    "adri", "fatima", "hala", "rana", "tanishaa", "kalina", "joana", "xiaoxiao",
    "xiaomeng", "xiaoyan", "hiumaan", "hsiaochen", "hsiaoyu", "gabrijela",
    "vlasta", "christel", "colette", "laura", "dena", "anu", "blessica", "selma",
    "denise", "celeste", "sylvie", "charline", "ariane", "katja", "louisa",
    "vicki", "eka", "athina", "hila", "swara", "noemi", "gudrun", "gadis",
    "irma", "elsa", "palmira", "imelda", "bianca", "mayu", "nanami", "shiori",
    "aigul", "jimin", "ona", "everita", "yasmin", "hemkala", "iselin", "pernille",
    "dilara", "agnieszka", "zofia", "brenda", "yara", "leila", "camila",
    "fernanda", "ines", "alina", "dariya", "viktoria", "petra", "sameera",
    "thilini", "vera", "triana", "carlota", "larissa", "hillevi", "sofie",
    "rehema", "pallavi", "saranya", "kani", "venba", "shruti", "premwadee",
    "emel", "gul", "uzma", "polina", "hoaimy", "orla",
})

MALE_NAMES = frozenset({
    "henry", "cliff", "guy", "jane", "matthew", "benwilson", "kyle", "kristy",
    "oliver", "joe", "george", "rob", "russell", "benjamin", "nate", "ryan",
    "michael", "thomas", "brian", "william", "ken", "abeo", "luke", "willem",
    "hamdan", "bassel", "bashkar", "borislav", "enric", "yunfeng", "yunjian",
    "yunze", "zhiyu", "wanlung", "hiujin", "yunjhe", "srecko", "antonin",
    "jeppe", "maarten", "ruben", "arnaud", "kert", "angelo", "harri", "henri",
    "claude", "jean", "gerard", "fabrice", "christoph", "conrad", "daniel",
    "giorgi", "nestoras", "avri", "madhur", "tamas", "gunnar", "ardi",
    "benigno", "gianni", "diego", "cataldo", "adriano", "naoki", "daichi",
    "keita", "daulet", "injoon", "bongjin", "leonas", "nils", "osman", "sagar",
    "finn", "farid", "marek", "donato", "fabio", "julio", "thiago", "duarte",
    "cristiano", "emil", "dmitry", "lukas", "rok", "kumar", "surya", "anbu",
    "mohan", "niwat", "ahmet", "salman", "asad", "ostap", "namminh", "colm",
})

ENGINE_QUALITY = {
    "neural": QUALITY_HIGH,
    "resemble": QUALITY_HIGH,
    "azure": QUALITY_MEDIUM,
    "speechify": QUALITY_MEDIUM,
    "standard": QUALITY_BASIC,
}

# Sort rank for sort_by_quality; unlisted qualities sort last
QUALITY_RANK = {QUALITY_HIGH: 0, QUALITY_MEDIUM: 1}


class GenderClassifier(Protocol):
    def __call__(self, name: str) -> str: ...


def name_list_gender(name: str) -> str:
    """Gender from the curated name lists, case-insensitive."""
    lowered = (name or "").lower()
    if lowered in FEMALE_NAMES:
        return GENDER_FEMALE
    if lowered in MALE_NAMES:
        return GENDER_MALE
    return GENDER_UNKNOWN


def classify_category(name: str, language: str) -> str:
    if name in CELEBRITY_VOICES:
        return CATEGORY_CELEBRITY
    for prefix, category in LANGUAGE_CATEGORIES:
        if (language or "").startswith(prefix):
            return category
    return CATEGORY_OTHER


def classify_quality(engine: str) -> str:
    return ENGINE_QUALITY.get(engine, QUALITY_MEDIUM)


def quality_rank(quality: str) -> int:
    return QUALITY_RANK.get(quality, len(QUALITY_RANK))
