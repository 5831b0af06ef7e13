"""Deterministic route metadata built from the route title alone.

Used whenever AI enrichment is unavailable or fails. The title is
accent-folded and matched against known Spanish mountain areas, provinces,
activity and difficulty vocabulary. The result is complete and
schema-shaped, so the assembled draft looks the same whichever path
produced it. Image references carry only lookup text; the image resolver
turns them into allow-listed URLs.
"""

import logging
import re
from typing import NamedTuple

from models import (
    Coordinates,
    EnrichedMetadata,
    ImageReference,
    LocationInfo,
    SeoInfo,
)
from waypoints import fold_text

logger = logging.getLogger(__name__)

SITE_NAME: str = "Peak Explorer"

# Central Spain, used when nothing in the title gives a location.
DEFAULT_COORDINATES = Coordinates(lat=40.4168, lng=-3.7038)

HERO_SIZE: tuple[int, int] = (1200, 800)
GALLERY_SIZE: tuple[int, int] = (800, 600)


class _Province(NamedTuple):
    name: str
    region: str
    lat: float
    lng: float


class _Area(NamedTuple):
    name: str
    province: str  # key into PROVINCES
    lat: float
    lng: float


# Folded keyword -> province. Several spellings may point at one province.
PROVINCES: dict[str, _Province] = {
    "a coruna": _Province("A Coruña", "Galicia", 43.3623, -8.4115),
    "coruna": _Province("A Coruña", "Galicia", 43.3623, -8.4115),
    "lugo": _Province("Lugo", "Galicia", 43.0121, -7.5558),
    "ourense": _Province("Ourense", "Galicia", 42.3358, -7.8639),
    "pontevedra": _Province("Pontevedra", "Galicia", 42.4310, -8.6444),
    "asturias": _Province("Asturias", "Principado de Asturias", 43.3614, -5.8593),
    "cantabria": _Province("Cantabria", "Cantabria", 43.4623, -3.8099),
    "bizkaia": _Province("Bizkaia", "País Vasco", 43.2630, -2.9350),
    "vizcaya": _Province("Bizkaia", "País Vasco", 43.2630, -2.9350),
    "gipuzkoa": _Province("Gipuzkoa", "País Vasco", 43.3183, -1.9812),
    "guipuzcoa": _Province("Gipuzkoa", "País Vasco", 43.3183, -1.9812),
    "alava": _Province("Álava", "País Vasco", 42.8467, -2.6716),
    "araba": _Province("Álava", "País Vasco", 42.8467, -2.6716),
    "navarra": _Province("Navarra", "Comunidad Foral de Navarra", 42.8125, -1.6458),
    "la rioja": _Province("La Rioja", "La Rioja", 42.4627, -2.4450),
    "huesca": _Province("Huesca", "Aragón", 42.1401, -0.4089),
    "zaragoza": _Province("Zaragoza", "Aragón", 41.6488, -0.8891),
    "teruel": _Province("Teruel", "Aragón", 40.3456, -1.1065),
    "lleida": _Province("Lleida", "Cataluña", 41.6176, 0.6200),
    "lerida": _Province("Lleida", "Cataluña", 41.6176, 0.6200),
    "girona": _Province("Girona", "Cataluña", 41.9794, 2.8214),
    "gerona": _Province("Girona", "Cataluña", 41.9794, 2.8214),
    "barcelona": _Province("Barcelona", "Cataluña", 41.3874, 2.1686),
    "tarragona": _Province("Tarragona", "Cataluña", 41.1189, 1.2445),
    "castellon": _Province("Castellón", "Comunidad Valenciana", 39.9864, -0.0513),
    "valencia": _Province("Valencia", "Comunidad Valenciana", 39.4699, -0.3763),
    "alicante": _Province("Alicante", "Comunidad Valenciana", 38.3452, -0.4810),
    "murcia": _Province("Murcia", "Región de Murcia", 37.9922, -1.1307),
    "madrid": _Province("Madrid", "Comunidad de Madrid", 40.4168, -3.7038),
    "avila": _Province("Ávila", "Castilla y León", 40.6565, -4.6818),
    "segovia": _Province("Segovia", "Castilla y León", 40.9429, -4.1088),
    "soria": _Province("Soria", "Castilla y León", 41.7665, -2.4790),
    "burgos": _Province("Burgos", "Castilla y León", 42.3439, -3.6969),
    "palencia": _Province("Palencia", "Castilla y León", 42.0097, -4.5288),
    "leon": _Province("León", "Castilla y León", 42.5987, -5.5671),
    "zamora": _Province("Zamora", "Castilla y León", 41.5035, -5.7446),
    "salamanca": _Province("Salamanca", "Castilla y León", 40.9701, -5.6635),
    "valladolid": _Province("Valladolid", "Castilla y León", 41.6523, -4.7245),
    "guadalajara": _Province("Guadalajara", "Castilla-La Mancha", 40.6329, -3.1672),
    "cuenca": _Province("Cuenca", "Castilla-La Mancha", 40.0704, -2.1374),
    "toledo": _Province("Toledo", "Castilla-La Mancha", 39.8628, -4.0273),
    "ciudad real": _Province("Ciudad Real", "Castilla-La Mancha", 38.9848, -3.9274),
    "albacete": _Province("Albacete", "Castilla-La Mancha", 38.9943, -1.8585),
    "caceres": _Province("Cáceres", "Extremadura", 39.4753, -6.3724),
    "badajoz": _Province("Badajoz", "Extremadura", 38.8794, -6.9707),
    "huelva": _Province("Huelva", "Andalucía", 37.2614, -6.9447),
    "sevilla": _Province("Sevilla", "Andalucía", 37.3891, -5.9845),
    "cordoba": _Province("Córdoba", "Andalucía", 37.8882, -4.7794),
    "jaen": _Province("Jaén", "Andalucía", 37.7796, -3.7849),
    "cadiz": _Province("Cádiz", "Andalucía", 36.5271, -6.2886),
    "malaga": _Province("Málaga", "Andalucía", 36.7213, -4.4214),
    "granada": _Province("Granada", "Andalucía", 37.1773, -3.5986),
    "almeria": _Province("Almería", "Andalucía", 36.8340, -2.4637),
    "mallorca": _Province("Illes Balears", "Illes Balears", 39.5696, 2.6502),
    "menorca": _Province("Illes Balears", "Illes Balears", 39.9496, 4.1104),
    "tenerife": _Province("Santa Cruz de Tenerife", "Canarias", 28.4636, -16.2518),
    "la palma": _Province("Santa Cruz de Tenerife", "Canarias", 28.6835, -17.7642),
    "gran canaria": _Province("Las Palmas", "Canarias", 28.1235, -15.4363),
}

# Well-known mountain areas, matched before provinces.
AREAS: dict[str, _Area] = {
    "picos de europa": _Area("Picos de Europa", "asturias", 43.1900, -4.8500),
    "naranjo de bulnes": _Area("Naranjo de Bulnes", "asturias", 43.2017, -4.8144),
    "cares": _Area("Garganta del Cares", "asturias", 43.2567, -4.8500),
    "somiedo": _Area("Somiedo", "asturias", 43.1000, -6.2500),
    "ancares": _Area("Os Ancares", "lugo", 42.8500, -6.8500),
    "ordesa": _Area("Ordesa y Monte Perdido", "huesca", 42.6500, -0.0300),
    "monte perdido": _Area("Monte Perdido", "huesca", 42.6750, 0.0340),
    "goriz": _Area("Ordesa y Monte Perdido", "huesca", 42.6630, 0.0150),
    "aneto": _Area("Aneto", "huesca", 42.6310, 0.6570),
    "benasque": _Area("Valle de Benasque", "huesca", 42.6030, 0.5230),
    "aiguestortes": _Area("Aigüestortes", "lleida", 42.5800, 0.9500),
    "montserrat": _Area("Montserrat", "barcelona", 41.5930, 1.8370),
    "montseny": _Area("Montseny", "barcelona", 41.7700, 2.4000),
    "moncayo": _Area("Moncayo", "zaragoza", 41.7870, -1.8390),
    "urbasa": _Area("Urbasa", "navarra", 42.8500, -2.1500),
    "gorbea": _Area("Gorbea", "alava", 43.0340, -2.7800),
    "urkiola": _Area("Urkiola", "bizkaia", 43.1000, -2.6500),
    "anboto": _Area("Anboto", "bizkaia", 43.0900, -2.6000),
    "urbion": _Area("Picos de Urbión", "soria", 42.0100, -2.8800),
    "guadarrama": _Area("Sierra de Guadarrama", "madrid", 40.8000, -3.9500),
    "pedriza": _Area("La Pedriza", "madrid", 40.7500, -3.8800),
    "penalara": _Area("Peñalara", "madrid", 40.8500, -3.9550),
    "gredos": _Area("Sierra de Gredos", "avila", 40.2500, -5.2700),
    "sierra nevada": _Area("Sierra Nevada", "granada", 37.0900, -3.4000),
    "mulhacen": _Area("Mulhacén", "granada", 37.0530, -3.3110),
    "caminito del rey": _Area("Caminito del Rey", "malaga", 36.9180, -4.7880),
    "grazalema": _Area("Sierra de Grazalema", "cadiz", 36.7600, -5.3700),
    "cazorla": _Area("Sierra de Cazorla", "jaen", 37.9100, -2.9100),
    "tramuntana": _Area("Serra de Tramuntana", "mallorca", 39.7500, 2.7500),
    "teide": _Area("Teide", "tenerife", 28.2720, -16.6420),
}

_PYRENEAN_PROVINCES = frozenset({"Huesca", "Lleida", "Girona", "Navarra"})
_SOUTHERN_REGIONS = frozenset({"Andalucía", "Canarias", "Región de Murcia"})

# Ordered: the first tier whose keywords appear in the title wins.
DIFFICULTY_KEYWORDS: list[tuple[str, tuple[str, ...]]] = [
    ("Extrema", ("extrema", "extremo", "k5", "k6")),
    ("Muy Difícil", ("muy dificil", "k4", "integral", "aneto", "monte perdido", "naranjo de bulnes")),
    ("Difícil", ("dificil", "k3", "pico", "cima", "cumbre", "ascension", "travesia", "tuca", "mulhacen")),
    ("Fácil", ("facil", "k1", "paseo", "via verde", "senda", "sendero", "familiar", "mirador", "lago", "laguna", "cascada", "ribera")),
]
DEFAULT_DIFFICULTY: str = "Moderada"

_FERRATA_KEYWORDS = ("ferrata", "via ferrata", "ferrada")
_SUMMIT_KEYWORDS = ("pico", "cima", "cumbre", "tuca", "tuc", "pic", "aneto", "mulhacen", "teide")


def _contains(text: str, keyword: str) -> bool:
    return re.search(rf"\b{re.escape(keyword)}\b", text) is not None


def _first_match(text: str, table: dict) -> str | None:
    for key in sorted(table, key=len, reverse=True):
        if _contains(text, key):
            return key
    return None


def match_location(title: str) -> tuple[_Area | None, _Province | None]:
    """Returns the mountain area and province named in the title, if any."""
    folded = fold_text(title)
    area_key = _first_match(folded, AREAS)
    if area_key:
        area = AREAS[area_key]
        return area, PROVINCES[area.province]
    province_key = _first_match(folded, PROVINCES)
    return None, PROVINCES[province_key] if province_key else None


def default_coordinates(title: str) -> Coordinates:
    """Best-known coordinates for the title: area, then province, then Spain."""
    area, province = match_location(title)
    if area:
        return Coordinates(lat=area.lat, lng=area.lng)
    if province:
        return Coordinates(lat=province.lat, lng=province.lng)
    return DEFAULT_COORDINATES


def classify_difficulty(title: str) -> str:
    folded = fold_text(title)
    for label, keywords in DIFFICULTY_KEYWORDS:
        if any(_contains(folded, kw) for kw in keywords):
            return label
    return DEFAULT_DIFFICULTY


def synthesize_metadata(title: str) -> EnrichedMetadata:
    """Builds complete route metadata from keyword heuristics on the title.

    Deterministic and network-free; always succeeds.
    """
    title = title.strip() or "Ruta sin nombre"
    folded = fold_text(title)
    area, province = match_location(title)
    is_ferrata = any(_contains(folded, kw) for kw in _FERRATA_KEYWORDS)
    is_summit = any(_contains(folded, kw) for kw in _SUMMIT_KEYWORDS)
    difficulty = classify_difficulty(title)

    province_name = province.name if province else ""
    region_name = province.region if province else ""
    place = area.name if area else province_name
    where = f" en {place}" if place else ""
    activity = "ferrata" if is_ferrata else "trekking"
    activity_label = "vía ferrata" if is_ferrata else "ruta de senderismo"

    seasons = _best_seasons(is_ferrata, is_summit, province)
    safety_tips = _safety_tips(is_ferrata, is_summit)

    summary = (
        f"{title}: {activity_label}{where} de dificultad "
        f"{difficulty.lower()}."
    )
    storytelling = _storytelling(title, activity_label, place, region_name, difficulty)

    keywords = [title, activity_label]
    keywords += [k for k in (place, province_name, region_name) if k]
    keywords = list(dict.fromkeys(keywords))

    lookup_place = place or title
    hero = ImageReference(
        alt=title, width=HERO_SIZE[0], height=HERO_SIZE[1]
    )
    gallery = [
        ImageReference(alt=alt, width=GALLERY_SIZE[0], height=GALLERY_SIZE[1])
        for alt in (
            title,
            f"{lookup_place} montaña",
            f"{lookup_place} paisaje",
        )
    ]

    logger.info(
        "Fallback metadata for %r: %s, %s, %s",
        title,
        activity,
        difficulty,
        place or "unknown location",
    )
    return EnrichedMetadata(
        type=activity,
        summary=summary,
        difficulty=difficulty,
        location=LocationInfo(region=region_name, province=province_name),
        approach=(
            f"Acceso por carretera hasta el punto de inicio{where}. "
            "Consulta el track para localizar el aparcamiento más cercano."
        ),
        approach_info="Información de acceso generada automáticamente; verifícala antes de salir.",
        return_path="Regreso por el mismo itinerario o siguiendo el track hasta el final.",
        return_info="",
        food=(
            f"Hay servicios de restauración en las localidades cercanas{where}."
            if place
            else "Lleva comida y agua suficientes para toda la jornada."
        ),
        food_info="",
        orientation=(
            "Tramos equipados con cable de vida; sigue siempre la línea de la ferrata."
            if is_ferrata
            else "Sigue las marcas del sendero y lleva el track cargado en el GPS o el móvil."
        ),
        orientation_info="",
        best_season=seasons,
        best_season_info=f"Época recomendada: {', '.join(seasons).lower()}.",
        dogs="No" if is_ferrata else "Atados",
        safety_tips=safety_tips,
        storytelling=storytelling,
        hero_image=hero,
        gallery=gallery,
        seo=SeoInfo(
            meta_title=f"{title} | {SITE_NAME}",
            meta_description=summary[:160],
            keywords=keywords,
        ),
    )


def _best_seasons(
    is_ferrata: bool, is_summit: bool, province: _Province | None
) -> list[str]:
    if province and province.region in _SOUTHERN_REGIONS:
        return ["Otoño", "Invierno", "Primavera"]
    if is_summit or (province and province.name in _PYRENEAN_PROVINCES):
        return ["Verano", "Otoño"]
    if is_ferrata:
        return ["Primavera", "Otoño"]
    return ["Primavera", "Verano", "Otoño"]


def _safety_tips(is_ferrata: bool, is_summit: bool) -> list[str]:
    tips = [
        "Consulta la previsión meteorológica antes de salir.",
        "Lleva agua suficiente, protección solar y ropa de abrigo.",
        "Informa a alguien de tu itinerario y hora prevista de regreso.",
        "Respeta la señalización y no abandones el sendero.",
    ]
    if is_ferrata:
        tips += [
            "Usa casco, arnés y disipador homologados en todo momento.",
            "No inicies la ferrata con riesgo de tormenta.",
        ]
    if is_summit:
        tips.append(
            "En alta montaña el tiempo cambia rápido; ten prevista una retirada."
        )
    return tips


def _storytelling(
    title: str, activity_label: str, place: str, region: str, difficulty: str
) -> str:
    setting = f"{place}, {region}" if place and region else (place or region)
    intro = (
        f"La {activity_label} **{title}** discurre por {setting}"
        if setting
        else f"La {activity_label} **{title}** recorre un entorno natural"
    )
    return (
        f"## {title}\n\n"
        f"{intro}, un itinerario de dificultad {difficulty.lower()} para "
        "disfrutar con calma del paisaje.\n\n"
        "Cada tramo ofrece un cambio de perspectiva: sendas que se abren a "
        "nuevas vistas, rincones para hacer una pausa y detalles que invitan "
        "a detenerse.\n\n"
        "Planifica la jornada, revisa el track y deja que el camino marque el ritmo."
    )
