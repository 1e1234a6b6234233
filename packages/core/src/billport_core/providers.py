"""Registry of Canadian billers and fuzzy provider matching.

Extracted vendor names ("ROGERS COMMUNICATIONS", "Enbridge") are matched
against the registry so that bills from the same provider share a
provider id, category and payment link.
"""

import re
import unicodedata
from dataclasses import dataclass
from difflib import SequenceMatcher
from typing import Optional

MIN_FUZZY_SCORE = 0.4


@dataclass(frozen=True)
class ProviderEntry:
    """A known biller."""

    name: str
    category: str
    types: tuple[str, ...]


def _p(name: str, category: str, *types: str) -> ProviderEntry:
    return ProviderEntry(name=name, category=category, types=types)


PROVIDER_REGISTRY: dict[str, ProviderEntry] = {
    # Utilities: electricity
    "hydro_one": _p("Hydro One", "utilities", "electricity"),
    "toronto_hydro": _p("Toronto Hydro", "utilities", "electricity"),
    "hydro_ottawa": _p("Hydro Ottawa", "utilities", "electricity"),
    "hydro_quebec": _p("Hydro-Québec", "utilities", "electricity"),
    "bc_hydro": _p("BC Hydro", "utilities", "electricity"),
    "enmax": _p("ENMAX", "utilities", "electricity"),
    "epcor": _p("EPCOR", "utilities", "electricity"),
    "manitoba_hydro": _p("Manitoba Hydro", "utilities", "electricity"),
    "saskpower": _p("SaskPower", "utilities", "electricity"),
    "nb_power": _p("NB Power", "utilities", "electricity"),
    "nova_scotia_power": _p("Nova Scotia Power", "utilities", "electricity"),
    # Utilities: natural gas
    "enbridge_gas": _p("Enbridge Gas", "utilities", "natural_gas"),
    "fortisbc": _p("FortisBC", "utilities", "natural_gas"),
    "energir": _p("Énergir", "utilities", "natural_gas"),
    "atco_gas": _p("ATCO Gas", "utilities", "natural_gas"),
    # Utilities: water and sewer
    "city_of_toronto": _p("City of Toronto", "utilities", "water_sewer", "property_tax"),
    "peel_region": _p("Peel Region", "utilities", "water_sewer"),
    "york_region": _p("York Region", "utilities", "water_sewer"),
    "city_of_ottawa": _p("City of Ottawa", "utilities", "water_sewer", "property_tax"),
    "city_of_vancouver": _p("City of Vancouver", "utilities", "water_sewer", "property_tax"),
    "city_of_calgary": _p("City of Calgary", "utilities", "water_sewer", "property_tax"),
    "halifax_water": _p("Halifax Water", "utilities", "water_sewer"),
    # Telecom
    "bell": _p("Bell", "telecom", "mobile", "internet", "cable_tv"),
    "rogers": _p("Rogers", "telecom", "mobile", "internet", "cable_tv"),
    "telus": _p("Telus", "telecom", "mobile", "internet"),
    "freedom_mobile": _p("Freedom Mobile", "telecom", "mobile"),
    "videotron": _p("Videotron", "telecom", "mobile", "cable_tv"),
    "fido": _p("Fido", "telecom", "mobile"),
    "koodo": _p("Koodo", "telecom", "mobile"),
    "virgin_plus": _p("Virgin Plus", "telecom", "mobile"),
    "public_mobile": _p("Public Mobile", "telecom", "mobile"),
    "shaw": _p("Shaw", "telecom", "internet", "cable_tv"),
    "cogeco": _p("Cogeco", "telecom", "internet"),
    "eastlink": _p("Eastlink", "telecom", "internet"),
    "teksavvy": _p("TekSavvy", "telecom", "internet"),
    "starlink": _p("Starlink", "telecom", "internet"),
    # Housing and banks
    "rbc": _p("RBC", "housing", "mortgage", "credit_card_bank", "loan"),
    "td": _p("TD", "housing", "mortgage", "credit_card_bank", "loan"),
    "bmo": _p("BMO", "housing", "mortgage", "credit_card_bank", "loan"),
    "cibc": _p("CIBC", "housing", "mortgage", "credit_card_bank", "loan"),
    "scotiabank": _p("Scotiabank", "housing", "mortgage", "credit_card_bank", "loan"),
    "tangerine": _p("Tangerine", "housing", "mortgage", "credit_card_bank"),
    "mcap": _p("MCAP", "housing", "mortgage"),
    # Retail credit cards
    "canadian_tire_triangle": _p("Canadian Tire Triangle", "financial", "credit_card_retail"),
    "pc_financial": _p("PC Financial", "financial", "credit_card_retail"),
    "amazon_ca": _p("Amazon.ca", "financial", "credit_card_retail"),
    "desjardins": _p("Desjardins", "financial", "credit_union", "car_insurance"),
    # Insurance
    "intact": _p("Intact", "insurance", "car_insurance", "home_tenant"),
    "aviva": _p("Aviva", "insurance", "car_insurance", "home_tenant"),
    "td_insurance": _p("TD Insurance", "insurance", "car_insurance", "home_tenant"),
    "cooperators": _p("Co-operators", "insurance", "car_insurance", "home_tenant"),
    "icbc": _p("ICBC", "insurance", "car_insurance"),
    # Subscriptions
    "netflix": _p("Netflix", "subscriptions", "streaming"),
    "disney_plus": _p("Disney+", "subscriptions", "streaming"),
    "prime_video": _p("Prime Video", "subscriptions", "streaming"),
    "crave": _p("Crave", "subscriptions", "streaming"),
    "spotify": _p("Spotify", "subscriptions", "streaming"),
    "youtube_premium": _p("YouTube Premium", "subscriptions", "streaming"),
    "google_one": _p("Google One", "subscriptions", "software"),
    "icloud": _p("iCloud", "subscriptions", "software"),
    "microsoft_365": _p("Microsoft 365", "subscriptions", "software"),
    "adobe": _p("Adobe", "subscriptions", "software"),
    # Transportation and government
    "etr_407": _p("407 ETR", "transportation", "parking_tolls"),
    "cra": _p("CRA (Canada Revenue Agency)", "government", "federal_tax"),
    "nslsc": _p("NSLSC", "government", "student_loan"),
    # Miscellaneous
    "goodlife_fitness": _p("GoodLife Fitness", "miscellaneous", "gym_fitness"),
    "planet_fitness": _p("Planet Fitness", "miscellaneous", "gym_fitness"),
    "adt": _p("ADT", "miscellaneous", "home_security"),
    "trupanion": _p("Trupanion", "miscellaneous", "pet_insurance"),
}


@dataclass(frozen=True)
class ProviderMatch:
    """Result of matching a vendor name against the registry."""

    provider_id: str
    provider_name: str
    category: str
    types: tuple[str, ...]
    score: float


@dataclass(frozen=True)
class ResolvedProvider:
    provider_id: str
    provider_name: str
    is_custom: bool


def normalize_vendor(name: str) -> str:
    """Lower-case, strip accents, turn punctuation into spaces, collapse whitespace."""
    folded = unicodedata.normalize("NFKD", name).encode("ascii", "ignore").decode("ascii")
    cleaned = re.sub(r"[^a-z0-9\s]", " ", folded.lower())
    return re.sub(r"\s+", " ", cleaned).strip()


def slugify(name: str) -> str:
    folded = unicodedata.normalize("NFKD", name).encode("ascii", "ignore").decode("ascii")
    folded = re.sub(r"['’]", "", folded.lower().strip())
    return re.sub(r"[^a-z0-9]+", "_", folded).strip("_")


def token_overlap(a: str, b: str) -> float:
    """Share of tokens in the longer name that match a token of the other.

    Tokens match when equal or when one contains the other.
    """
    tokens_a = normalize_vendor(a).split()
    tokens_b = normalize_vendor(b).split()
    if not tokens_a or not tokens_b:
        return 0.0
    matches = 0
    for ta in tokens_a:
        if any(ta == tb or ta in tb or tb in ta for tb in tokens_b):
            matches += 1
    return matches / max(len(tokens_a), len(tokens_b))


def _match(provider_id: str, entry: ProviderEntry, score: float) -> ProviderMatch:
    return ProviderMatch(
        provider_id=provider_id,
        provider_name=entry.name,
        category=entry.category,
        types=entry.types,
        score=score,
    )


def fuzzy_match_provider(vendor_name: str) -> Optional[ProviderMatch]:
    """Find the registry entry that best matches ``vendor_name``.

    Scoring:
    - identical after normalization: 1.0 (returned immediately)
    - one name contains the other: 0.9
    - otherwise 0.6 * token overlap + 0.4 * sequence similarity, kept
      only when at least 0.4
    """
    if not vendor_name or not vendor_name.strip():
        return None

    vendor = normalize_vendor(vendor_name)
    if not vendor:
        return None

    best: Optional[ProviderMatch] = None
    for provider_id, entry in PROVIDER_REGISTRY.items():
        provider = normalize_vendor(entry.name)
        if vendor == provider:
            return _match(provider_id, entry, 1.0)

        if vendor in provider or provider in vendor:
            score = 0.9
        else:
            similarity = SequenceMatcher(None, vendor, provider).ratio()
            score = token_overlap(vendor_name, entry.name) * 0.6 + similarity * 0.4
            if score < MIN_FUZZY_SCORE:
                continue

        if best is None or score > best.score:
            best = _match(provider_id, entry, score)

    return best


def lookup_provider_id(name: str) -> Optional[str]:
    """Exact (trimmed) name lookup."""
    wanted = name.strip()
    for provider_id, entry in PROVIDER_REGISTRY.items():
        if entry.name == wanted:
            return provider_id
    return None


def resolve_provider(name: str) -> ResolvedProvider:
    """Resolve a name to a registry id, or to ``custom_<slug>`` if unknown."""
    trimmed = name.strip()
    known = lookup_provider_id(trimmed)
    if known:
        return ResolvedProvider(known, PROVIDER_REGISTRY[known].name, False)
    return ResolvedProvider(f"custom_{slugify(trimmed)}", trimmed, True)
