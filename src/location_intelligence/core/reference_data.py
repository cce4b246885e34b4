"""Static reference tables: states, regions, metropolitan markers and seeds.

The seed rows populate the administrable ``city_estimates`` and
``neighborhood_profiles`` tables on first run. After that the database is the
source of truth and operators edit it out-of-band.
"""

from __future__ import annotations

from .models import NeighborhoodCategory, Region

DEFAULT_SCORE = 25

STATE_TO_REGION: dict[str, Region] = {
    # Southeast
    "SP": Region.SOUTHEAST, "RJ": Region.SOUTHEAST, "MG": Region.SOUTHEAST, "ES": Region.SOUTHEAST,
    # South
    "RS": Region.SOUTH, "SC": Region.SOUTH, "PR": Region.SOUTH,
    # Center-West
    "GO": Region.CENTER_WEST, "MT": Region.CENTER_WEST, "MS": Region.CENTER_WEST, "DF": Region.CENTER_WEST,
    # Northeast
    "BA": Region.NORTHEAST, "PE": Region.NORTHEAST, "CE": Region.NORTHEAST, "MA": Region.NORTHEAST,
    "PB": Region.NORTHEAST, "RN": Region.NORTHEAST, "AL": Region.NORTHEAST, "SE": Region.NORTHEAST,
    "PI": Region.NORTHEAST,
    # North
    "AM": Region.NORTH, "PA": Region.NORTH, "AC": Region.NORTH, "RO": Region.NORTH,
    "RR": Region.NORTH, "AP": Region.NORTH, "TO": Region.NORTH,
}

# Unknown states land in the Southeast bucket
DEFAULT_REGION = Region.SOUTHEAST

REGION_DEFAULT_SCORES: dict[Region, int] = {
    Region.SOUTHEAST: 35,
    Region.SOUTH: 38,
    Region.CENTER_WEST: 32,
    Region.NORTHEAST: 28,
    Region.NORTH: 25,
}

# Full state names, lowercased and without accents
STATE_NAMES: dict[str, str] = {
    "acre": "AC", "alagoas": "AL", "amapa": "AP", "amazonas": "AM",
    "bahia": "BA", "ceara": "CE", "distrito federal": "DF", "espirito santo": "ES",
    "goias": "GO", "maranhao": "MA", "mato grosso": "MT", "mato grosso do sul": "MS",
    "minas gerais": "MG", "para": "PA", "paraiba": "PB", "parana": "PR",
    "pernambuco": "PE", "piaui": "PI", "rio de janeiro": "RJ", "rio grande do norte": "RN",
    "rio grande do sul": "RS", "rondonia": "RO", "roraima": "RR", "santa catarina": "SC",
    "sao paulo": "SP", "sergipe": "SE", "tocantins": "TO",
}

# --- Metropolitan area (Montes Claros, MG) ---------------------------------

METRO_NAME = "Montes Claros"
METRO_STATE = "MG"
METRO_NAME_MARKERS = ("montes claros",)
METRO_TOKEN_MARKERS = ("moc",)
METRO_POSTAL_PREFIXES = ("39400", "39401", "39402", "39403", "39404", "39405")

DEFAULT_BASE_PRICE_PER_AREA = 3500.0

KNOWN_NEIGHBORHOODS: tuple[str, ...] = (
    "centro", "ibituruna", "morada do sol", "augusta mota", "todos os santos",
    "candida camara", "major prates", "maracana", "delfino magalhaes", "sao jose",
    "vila oliveira", "cintra", "jaragua", "funcionarios", "vila atlantida",
)

# Display names for keys whose accents were stripped
CANONICAL_NEIGHBORHOOD_NAMES: dict[str, str] = {
    "candida camara": "Cândida Câmara",
    "maracana": "Maracanã",
    "jaragua": "Jaraguá",
    "delfino magalhaes": "Delfino Magalhães",
    "sao jose": "São José",
    "funcionarios": "Funcionários",
    "vila atlantida": "Vila Atlântida",
}

CATEGORY_BUSINESS_FACTORS: dict[NeighborhoodCategory, float] = {
    NeighborhoodCategory.HIGH: 1.15,
    NeighborhoodCategory.MID: 1.08,
    NeighborhoodCategory.STANDARD: 1.00,
}

# --- Seeds -----------------------------------------------------------------

CITY_ESTIMATE_SEED: list[dict] = [
    {"city_name": "São Paulo", "state_code": "SP", "estimated_income": 4300.0, "score": 40, "region": Region.SOUTHEAST, "population_range": "10M+"},
    {"city_name": "Campinas", "state_code": "SP", "estimated_income": 3900.0, "score": 40, "region": Region.SOUTHEAST, "population_range": "1M-2M"},
    {"city_name": "Rio de Janeiro", "state_code": "RJ", "estimated_income": 4100.0, "score": 40, "region": Region.SOUTHEAST, "population_range": "5M-10M"},
    {"city_name": "Niterói", "state_code": "RJ", "estimated_income": 5300.0, "score": 45, "region": Region.SOUTHEAST, "population_range": "500k-1M"},
    {"city_name": "Belo Horizonte", "state_code": "MG", "estimated_income": 3800.0, "score": 40, "region": Region.SOUTHEAST, "population_range": "2M-5M"},
    {"city_name": "Montes Claros", "state_code": "MG", "estimated_income": 2200.0, "score": 30, "region": Region.SOUTHEAST, "population_range": "300k-500k"},
    {"city_name": "Uberlândia", "state_code": "MG", "estimated_income": 2900.0, "score": 35, "region": Region.SOUTHEAST, "population_range": "500k-1M"},
    {"city_name": "Juiz de Fora", "state_code": "MG", "estimated_income": 2800.0, "score": 35, "region": Region.SOUTHEAST, "population_range": "500k-1M"},
    {"city_name": "Vitória", "state_code": "ES", "estimated_income": 4600.0, "score": 40, "region": Region.SOUTHEAST, "population_range": "300k-500k"},
    {"city_name": "Curitiba", "state_code": "PR", "estimated_income": 4000.0, "score": 40, "region": Region.SOUTH, "population_range": "1M-2M"},
    {"city_name": "Florianópolis", "state_code": "SC", "estimated_income": 4700.0, "score": 40, "region": Region.SOUTH, "population_range": "500k-1M"},
    {"city_name": "Porto Alegre", "state_code": "RS", "estimated_income": 4200.0, "score": 40, "region": Region.SOUTH, "population_range": "1M-2M"},
    {"city_name": "Brasília", "state_code": "DF", "estimated_income": 5500.0, "score": 45, "region": Region.CENTER_WEST, "population_range": "2M-5M"},
    {"city_name": "Goiânia", "state_code": "GO", "estimated_income": 3300.0, "score": 35, "region": Region.CENTER_WEST, "population_range": "1M-2M"},
    {"city_name": "Salvador", "state_code": "BA", "estimated_income": 2600.0, "score": 35, "region": Region.NORTHEAST, "population_range": "2M-5M"},
    {"city_name": "Recife", "state_code": "PE", "estimated_income": 2900.0, "score": 35, "region": Region.NORTHEAST, "population_range": "1M-2M"},
    {"city_name": "Fortaleza", "state_code": "CE", "estimated_income": 2400.0, "score": 30, "region": Region.NORTHEAST, "population_range": "2M-5M"},
    {"city_name": "Manaus", "state_code": "AM", "estimated_income": 2100.0, "score": 30, "region": Region.NORTH, "population_range": "2M-5M"},
    {"city_name": "Belém", "state_code": "PA", "estimated_income": 2300.0, "score": 30, "region": Region.NORTH, "population_range": "1M-2M"},
]

NEIGHBORHOOD_SEED: list[dict] = [
    {"name": "Ibituruna", "category": NeighborhoodCategory.HIGH, "real_estate_factor": 1.30, "reference_price_per_area": 4600.0},
    {"name": "Morada do Sol", "category": NeighborhoodCategory.HIGH, "real_estate_factor": 1.25},
    {"name": "Jaraguá", "category": NeighborhoodCategory.HIGH, "real_estate_factor": 1.20},
    {"name": "Cândida Câmara", "category": NeighborhoodCategory.HIGH, "real_estate_factor": 1.20},
    {"name": "Centro", "category": NeighborhoodCategory.MID, "real_estate_factor": 1.15},
    {"name": "Todos os Santos", "category": NeighborhoodCategory.MID, "real_estate_factor": 1.15},
    {"name": "Funcionários", "category": NeighborhoodCategory.MID, "real_estate_factor": 1.10},
    {"name": "Vila Atlântida", "category": NeighborhoodCategory.MID, "real_estate_factor": 1.08},
    {"name": "Augusta Mota", "category": NeighborhoodCategory.MID, "real_estate_factor": 1.05},
    {"name": "São José", "category": NeighborhoodCategory.STANDARD, "real_estate_factor": 1.05},
    {"name": "Vila Oliveira", "category": NeighborhoodCategory.STANDARD, "real_estate_factor": 1.03},
    {"name": "Cintra", "category": NeighborhoodCategory.STANDARD, "real_estate_factor": 1.02},
    {"name": "Delfino Magalhães", "category": NeighborhoodCategory.STANDARD, "real_estate_factor": 1.00},
    {"name": "Maracanã", "category": NeighborhoodCategory.STANDARD, "real_estate_factor": 1.00},
    {"name": "Major Prates", "category": NeighborhoodCategory.STANDARD, "real_estate_factor": 1.00},
]
