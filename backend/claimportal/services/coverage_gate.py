"""
Peril-Coverage Gate

Decides which claim types a policy allows. The product's peril list is
matched against a fixed vocabulary per claim type; products without perils
fall back to their tier.
"""
from typing import Dict, List, Optional, Tuple

from claimportal.db.models import ClaimType, ProductType
from claimportal.services.policy_context import PolicyContext


# Case-insensitive substrings, any match on any peril allows the claim type
PERIL_VOCABULARY: Dict[ClaimType, Tuple[str, ...]] = {
    ClaimType.BREAKDOWN: (
        "breakdown", "malfunction", "mechanical", "electrical", "extended warranty", "warranty",
    ),
    ClaimType.DAMAGE: (
        "accidental damage", "screen damage", "water", "liquid", "damage",
    ),
    ClaimType.THEFT: (
        "theft", "loss", "stolen",
    ),
}

# Used only when the product lists no perils
PRODUCT_TIER_FALLBACK: Dict[str, Tuple[ClaimType, ...]] = {
    ProductType.EXTENDED_WARRANTY.value: (ClaimType.BREAKDOWN,),
    ProductType.INSURANCE_LITE.value: (ClaimType.DAMAGE,),
    ProductType.INSURANCE_MAX.value: (ClaimType.BREAKDOWN, ClaimType.DAMAGE, ClaimType.THEFT),
}


class CoverageGate:
    """Pure eligibility check over a PolicyContext."""

    def is_claim_type_allowed(
        self,
        claim_type: Optional[str],
        policy: Optional[PolicyContext],
    ) -> bool:
        if policy is None or not claim_type:
            return False
        try:
            claim_type = ClaimType(claim_type)
        except ValueError:
            return False

        perils = [p.lower() for p in policy.perils if p]
        if perils:
            keywords = PERIL_VOCABULARY[claim_type]
            return any(keyword in peril for peril in perils for keyword in keywords)

        return claim_type in PRODUCT_TIER_FALLBACK.get(policy.product_type, ())

    def allowed_claim_types(self, policy: Optional[PolicyContext]) -> List[ClaimType]:
        return [ct for ct in ClaimType if self.is_claim_type_allowed(ct.value, policy)]


# Singleton instance
_coverage_gate: Optional[CoverageGate] = None


def get_coverage_gate() -> CoverageGate:
    """Get or create the coverage gate singleton."""
    global _coverage_gate
    if _coverage_gate is None:
        _coverage_gate = CoverageGate()
    return _coverage_gate
