"""
CapCompare — Predefined Peer Groups
Static fashion/retail cohorts used for peer-group comparisons.
"""
from typing import Dict, Iterable, List, Optional

from capcompare.data.models import PeerGroup

PREDEFINED_PEER_GROUPS: List[PeerGroup] = [
    PeerGroup(
        name="Luxury",
        description="High-end luxury fashion houses",
        tickers=(
            "MC.PA",    # LVMH
            "RMS.PA",   # Hermès
            "KER.PA",   # Kering
            "CDI.PA",   # Dior
            "CFR.SW",   # Richemont
            "MONC.MI",  # Moncler
            "BC.MI",    # Brunello Cucinelli
            "BRBY.L",   # Burberry
            "1913.HK",  # Prada
            "ZGN",      # Zegna
        ),
    ),
    PeerGroup(
        name="Sportswear",
        description="Athletic and sportswear brands",
        tickers=("NKE", "ADS.DE", "PUM.DE", "LULU", "UA", "ONON", "DECK", "SKX", "COLM", "7936.T"),
    ),
    PeerGroup(
        name="Fast Fashion",
        description="Fast fashion and value retailers",
        tickers=("ITX.MC", "HM-B.ST", "9983.T", "GAP", "ANF", "URBN", "AEO", "GES", "LPP.WA", "BOO.L"),
    ),
    PeerGroup(
        name="Department Stores",
        description="Multi-brand department store retailers",
        tickers=("M", "JWN", "KSS", "DDS", "NXT.L", "MKS.L", "JD.L"),
    ),
    PeerGroup(
        name="Value Retail",
        description="Off-price and discount retailers",
        tickers=("TJX", "ROST", "BURL", "FL", "SVV"),
    ),
    PeerGroup(
        name="Footwear",
        description="Footwear-focused brands",
        tickers=(
            "NKE", "BIRK", "CROX", "DECK", "SKX", "WWW",
            "SHOO", "CAL", "BOOT", "GCO", "SFER.MI", "TOD.MI",
        ),
    ),
    PeerGroup(
        name="E-commerce",
        description="Online-first fashion retailers",
        tickers=("ZAL.DE", "VIPS", "RVLV", "TDUP", "REAL", "RENT", "LUXE", "BOOZT.ST", "YOU.DE", "BOO.L"),
    ),
    PeerGroup(
        name="Asian Fashion",
        description="Major Asian fashion companies",
        tickers=("9983.T", "1929.HK", "1913.HK", "2331.HK", "3998.HK", "6110.HK", "7936.T", "7606.T"),
    ),
]


def peer_group_names() -> List[str]:
    return [g.name for g in PREDEFINED_PEER_GROUPS]


def get_peer_group(name: str) -> Optional[PeerGroup]:
    """Case-insensitive lookup of a predefined group."""
    wanted = name.strip().lower()
    for group in PREDEFINED_PEER_GROUPS:
        if group.name.lower() == wanted:
            return group
    return None


def select_peer_groups(names: Optional[Iterable[str]] = None) -> List[PeerGroup]:
    """
    Predefined groups matching `names` (case-insensitive), in predefined
    order. None or empty selects every group. Unknown names raise ValueError.
    """
    if not names:
        return list(PREDEFINED_PEER_GROUPS)

    wanted: Dict[str, str] = {n.strip().lower(): n for n in names}
    known = {g.name.lower() for g in PREDEFINED_PEER_GROUPS}
    unknown = [original for key, original in wanted.items() if key not in known]
    if unknown:
        raise ValueError(
            f"Unknown peer groups: {', '.join(unknown)}. "
            f"Available groups: {', '.join(peer_group_names())}"
        )
    return [g for g in PREDEFINED_PEER_GROUPS if g.name.lower() in wanted]
