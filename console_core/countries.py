"""Display names and flags for the country codes stored on venues."""

from typing import NamedTuple


class CountryInfo(NamedTuple):
    code: str
    name: str
    flag: str


COUNTRIES = {
    info.code: info
    for info in (
        CountryInfo("US", "United States", "🇺🇸"),
        CountryInfo("MX", "Mexico", "🇲🇽"),
        CountryInfo("CA", "Canada", "🇨🇦"),
        CountryInfo("GB", "United Kingdom", "🇬🇧"),
        CountryInfo("FR", "France", "🇫🇷"),
        CountryInfo("DE", "Germany", "🇩🇪"),
        CountryInfo("ES", "Spain", "🇪🇸"),
        CountryInfo("IT", "Italy", "🇮🇹"),
        CountryInfo("AU", "Australia", "🇦🇺"),
        CountryInfo("JP", "Japan", "🇯🇵"),
        CountryInfo("BR", "Brazil", "🇧🇷"),
    )
}

UNKNOWN_FLAG = "🏳️"


def get_country_info(code: str | None) -> CountryInfo | None:
    if not code:
        return None
    return COUNTRIES.get(code.upper())


def country_name(code: str | None) -> str:
    """Readable name; unknown codes are shown as-is, missing ones as 'Unknown'."""
    info = get_country_info(code)
    if info:
        return info.name
    return code or "Unknown"


def country_flag(code: str | None) -> str:
    info = get_country_info(code)
    return info.flag if info else UNKNOWN_FLAG
