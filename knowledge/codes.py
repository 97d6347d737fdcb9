"""Fixed code values of the FUV product line."""

from typing import Dict, FrozenSet, Tuple

# Code table groups
GROUP_DURATION = "OfferteAblaufdatum"
GROUP_TERMS = "COT_FUV_AVB"
GROUP_WORKLOAD = "COT_Beschaeftigungsgrad"
GROUP_POSITION = "COT_STELLUNG_IM_BETRIEB"
GROUP_AGENCY_COMPETENCE = "COT_FUV_Agenturkompetenz"

# Quote type (Offerte Art) of contract renewals
QUOTE_TYPE_RENEWAL = "OfferteArtVerl"

# Quote types subject to the malus check. "vertrag" is the legacy literal
# still found on older contract renewals.
MALUS_QUOTE_TYPES: FrozenSet[str] = frozenset({QUOTE_TYPE_RENEWAL, "vertrag"})

# Position in company (Stellung im Betrieb): mitarbeitende Familienmitglieder
FAMILY_MEMBER_CODES: FrozenSet[str] = frozenset({
    "COD_EHEGATTE",
    "COD_SOHN_TOCHTER",
    "COD_ELTERNTEIL",
    "COD_GESCHWISTER",
    "COD_EHEGATTE_GESCHWISTER_TEILWEISE_ARBEITNEHMER",
    "COD_UEBRIGE_FAMILIENMITGLIEDER",
})

# Position in company: business owners
OWNER_CODES: FrozenSet[str] = frozenset({
    "COD_INHABER_BETRIEB",
    "COD_INHABER_TEILWEISE_ARBEITNEHMER",
})

# Taggeldaufschub (deferral period) -> discount percent
DEFERRAL_DISCOUNTS: Dict[str, int] = {
    "COD_3_TAGE": 0,
    "COD_15_TAGE": 20,
    "COD_30_TAGE": 40,
    # Label-based values from older quotes
    "3. Tag": 0,
    "15. Tag": 20,
    "30. Tag": 40,
}

# Expert approval (Genehmigung Art)
APPROVAL_OK = "ExperteGenehmigung_OK"
APPROVAL_OK_DOCTOR = "ExperteGenehmigung_OKArzt"
APPROVED_TYPES: FrozenSet[str] = frozenset({APPROVAL_OK, APPROVAL_OK_DOCTOR})

# Bonity tiers (CRIFCode)
BONITY_HIGH = "CRIF_HOCH"
BONITY_MEDIUM = "CRIF_MITTEL"
BONITY_LOW = "CRIF_TIEF"

# Payment frequency (Prämienzahlung)
PAYMENT_YEARLY = "jaehrlich"
PAYMENT_FREQUENCIES: Tuple[str, ...] = (
    PAYMENT_YEARLY,
    "halbjaehrlich",
    "vierteljaehrlich",
    "monatlich",
)
