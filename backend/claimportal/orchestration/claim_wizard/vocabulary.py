"""
Fixed vocabularies offered by the claim wizard.
"""
from typing import Dict, List, Optional

FAULT_CATEGORIES: List[str] = [
    "Screen/Display",
    "Battery/Power",
    "Charging",
    "Audio/Sound",
    "Camera",
    "Connectivity",
    "Software/Performance",
    "Physical/Hardware",
    "Other",
]

SPECIFIC_ISSUES: Dict[str, List[str]] = {
    "Screen/Display": [
        "Screen won't turn on", "Lines/dead pixels on screen", "Screen flickering",
        "Touchscreen not responding", "Screen color issues", "Screen brightness issues",
        "Cracked/broken display", "Backlight issues",
    ],
    "Battery/Power": [
        "Battery drains quickly", "Device won't turn on", "Device shuts down unexpectedly",
        "Battery swollen", "Battery percentage incorrect", "Power button not working",
    ],
    "Charging": [
        "Device won't charge", "Charging port damaged", "Wireless charging not working",
        "Slow charging", "Charger not recognized",
    ],
    "Audio/Sound": [
        "No sound/audio", "Speaker distortion", "Microphone not working",
        "Headphone jack issues", "Audio cutting out", "Volume controls not working",
    ],
    "Camera": [
        "Camera not working", "Blurry photos/videos", "Camera app crashing",
        "Flash not working", "Front/rear camera issues", "Video recording issues",
    ],
    "Connectivity": [
        "WiFi not working", "Bluetooth issues", "Mobile signal problems",
        "GPS not working", "NFC issues", "SIM card not detected",
    ],
    "Software/Performance": [
        "Slow performance", "Device freezing/hanging", "Random restarts", "Apps crashing",
        "OS not booting", "Update failed", "Overheating",
    ],
    "Physical/Hardware": [
        "Loose parts", "Button stuck/not working", "Port damaged", "Hinge problem",
        "Build quality issue", "Water damage indicators",
    ],
    "Other": ["Other issue not listed"],
}

SEVERITY_LEVELS: List[str] = [
    "Critical - Device completely unusable",
    "High - Major functionality affected",
    "Medium - Some features not working",
    "Low - Minor inconvenience",
]

DEFAULT_SEVERITY = "Medium - Some features not working"

ISSUE_FREQUENCIES: List[str] = ["intermittent", "constant"]

DAMAGE_TYPES: List[str] = [
    "Screen Damage",
    "Water/Liquid Damage",
    "Drop/Impact Damage",
    "Scratch/Dent",
    "Cracked/Broken Parts",
    "Electrical Damage",
    "Fire/Heat Damage",
    "Other Physical Damage",
]

DAMAGE_AREAS: List[str] = [
    "Screen/Display",
    "Back Panel/Casing",
    "Camera Lens",
    "Charging Port",
    "Buttons/Controls",
    "Battery",
    "Internal Components",
    "Hinges/Connectors",
    "Multiple Areas",
    "Entire Device",
]

DEVICE_CATEGORIES: List[str] = [
    "Smartphone",
    "Tablet",
    "Laptop",
    "Desktop Computer",
    "Smartwatch",
    "Headphones/Earbuds",
    "Gaming Console",
    "Camera",
    "Television",
    "Home Appliance",
    "Other Electronics",
]

# Keyword synonyms used to compare free-text device descriptions
CATEGORY_KEYWORDS: Dict[str, List[str]] = {
    # checked before Smartphone, "headphones" contains "phone"
    "Headphones/Earbuds": ["headphone", "earbud", "earphone", "airpods"],
    "Television": ["television", "smart tv", "oled", "qled", "lcd", "bravia", "tv"],
    "Smartphone": ["smartphone", "phone", "mobile", "iphone", "galaxy s", "pixel"],
    "Laptop": ["laptop", "notebook", "macbook", "chromebook", "ultrabook"],
    "Tablet": ["tablet", "ipad", "galaxy tab", "surface pro"],
    "Desktop Computer": ["desktop", "computer", "imac", "mac mini", "workstation", "pc"],
    "Camera": ["camera", "dslr", "mirrorless", "camcorder", "gopro"],
    "Gaming Console": ["console", "playstation", "xbox", "nintendo", "ps5", "ps4"],
    "Smartwatch": ["watch", "smartwatch"],
    "Home Appliance": ["appliance", "washer", "dryer", "fridge", "refrigerator", "dishwasher", "microwave"],
}


def match_device_category(text: Optional[str]) -> Optional[str]:
    """Map free text such as 'iPhone 14 Pro' or 'Smart TV' to a device category."""
    if not text:
        return None
    lowered = text.lower().strip()
    for category in DEVICE_CATEGORIES:
        if category.lower() == lowered:
            return category
    for category, keywords in CATEGORY_KEYWORDS.items():
        if any(keyword in lowered for keyword in keywords):
            return category
    return None


def normalize_severity(value: Optional[str]) -> Optional[str]:
    """Snap a free-text severity onto one of SEVERITY_LEVELS."""
    if not value:
        return None
    lowered = value.lower()
    for level in SEVERITY_LEVELS:
        if lowered.startswith(level.split(" - ")[0].lower()):
            return level
    for level in SEVERITY_LEVELS:
        if level.split(" - ")[0].lower() in lowered:
            return level
    return None
