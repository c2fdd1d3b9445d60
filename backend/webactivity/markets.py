"""Static market table: one localized website per market."""

from dataclasses import dataclass, field

from webactivity.config import Settings
from webactivity.exceptions import UnknownMarketError


@dataclass(frozen=True)
class MarketConfig:
    """A tracked regional website."""
    url: str
    language: str
    timezone: str
    name: str
    allowed_paths: tuple[str, ...] = field(default_factory=tuple)

    @property
    def base_url(self) -> str:
        """Site root without trailing slash, used to locate sitemaps."""
        return self.url.rstrip("/")


GLOBAL_SITE = "https://www.truthaboutweight.global"

MARKETS: dict[str, MarketConfig] = {
    "de": MarketConfig("https://www.ueber-gewicht.de/", "de", "Europe/Berlin", "Germany"),
    "fr": MarketConfig("https://www.audeladupoids.fr/", "fr", "Europe/Paris", "France"),
    "it": MarketConfig("https://www.novoio.it/", "it", "Europe/Rome", "Italy"),
    "es": MarketConfig("https://www.laverdaddesupeso.es/", "es", "Europe/Madrid", "Spain"),
    "ca_en": MarketConfig("https://www.truthaboutweight.ca/en/", "en", "America/Toronto", "Canada (EN)"),
    "ca_fr": MarketConfig("https://www.truthaboutweight.ca/fr/", "fr", "America/Toronto", "Canada (FR)"),
    "ch_de": MarketConfig("https://www.meingewichtverstehen.ch/", "de", "Europe/Zurich", "Switzerland (DE)"),
    "ch_it": MarketConfig("https://www.laveritasulpeso.ch/", "it", "Europe/Zurich", "Switzerland (IT)"),
    "ch_fr": MarketConfig("https://www.laveritesurlepoids.ch/", "fr", "Europe/Zurich", "Switzerland (FR)"),
    "se": MarketConfig("https://www.meromobesitas.se/", "sv", "Europe/Stockholm", "Sweden"),
    "no": MarketConfig("https://www.snakkomvekt.no/", "no", "Europe/Oslo", "Norway"),
    "lv": MarketConfig("https://www.manssvars.lv/", "lv", "Europe/Riga", "Latvia"),
    "ee": MarketConfig("https://www.minukaal.ee/", "et", "Europe/Tallinn", "Estonia"),
    "lt": MarketConfig("https://www.manosvoris.lt/", "lt", "Europe/Vilnius", "Lithuania"),
    "hr": MarketConfig("https://www.istinaodebljini.hr/", "hr", "Europe/Zagreb", "Croatia"),
    # Markets hosted under the global site are restricted to their subpath
    "be_nl": MarketConfig(f"{GLOBAL_SITE}/be/nl.html", "nl", "Europe/Brussels", "Belgium (NL)", ("/be/",)),
    "be_fr": MarketConfig(f"{GLOBAL_SITE}/be/fr.html", "fr", "Europe/Brussels", "Belgium (FR)", ("/be/",)),
    "bg": MarketConfig(f"{GLOBAL_SITE}/bg/bg.html", "bg", "Europe/Sofia", "Bulgaria", ("/bg/",)),
    "fi": MarketConfig(f"{GLOBAL_SITE}/fi/fi.html", "fi", "Europe/Helsinki", "Finland", ("/fi/",)),
    "gr": MarketConfig(f"{GLOBAL_SITE}/gr/el.html", "el", "Europe/Athens", "Greece", ("/gr/",)),
    "hu": MarketConfig(f"{GLOBAL_SITE}/hu/hu.html", "hu", "Europe/Budapest", "Hungary", ("/hu/",)),
    "is": MarketConfig(f"{GLOBAL_SITE}/is/is.html", "is", "Atlantic/Reykjavik", "Iceland", ("/is/",)),
    "ie": MarketConfig(f"{GLOBAL_SITE}/ie/en.html", "en", "Europe/Dublin", "Ireland", ("/ie/",)),
    "sk": MarketConfig(f"{GLOBAL_SITE}/sk/sk.html", "sk", "Europe/Bratislava", "Slovakia", ("/sk/",)),
    "rs": MarketConfig(f"{GLOBAL_SITE}/rs/sr.html", "sr", "Europe/Belgrade", "Serbia", ("/rs/",)),
}


def get_market(market: str) -> MarketConfig:
    """Look up a market, raising UnknownMarketError if it is not configured."""
    try:
        return MARKETS[market]
    except KeyError:
        raise UnknownMarketError(market) from None


def configured_markets(settings: Settings) -> list[str]:
    """Market ids to sync, honouring the optional enabled_markets filter."""
    if not settings.enabled_markets:
        return list(MARKETS)
    return [m for m in settings.enabled_markets if m in MARKETS]
