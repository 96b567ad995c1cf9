"""Search URL parsing, station facet handling and canonical query ids."""

from dataclasses import dataclass, field
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

DEFAULT_ALLOWED_HOSTS = ("591.com.tw",)

STATION_PARAM = "station"

REGION_NAMES = {
    "1": "台北市",
    "2": "基隆市",
    "3": "新北市",
    "4": "宜蘭縣",
    "5": "桃園市",
    "6": "新竹縣",
    "7": "新竹市",
    "8": "苗栗縣",
    "9": "台中市",
    "10": "彰化縣",
    "11": "南投縣",
    "12": "嘉義市",
    "13": "嘉義縣",
    "14": "雲林縣",
    "15": "台南市",
    "16": "高雄市",
    "17": "澎湖縣",
    "18": "金門縣",
    "19": "屏東縣",
    "20": "台東縣",
    "21": "花蓮縣",
    "22": "連江縣",
}

KIND_NAMES = {
    "0": "所有類型",
    "1": "整層住家",
    "2": "雅房",
    "3": "分租套房",
    "4": "車位",
    "8": "其他",
}


def _split_multi(values: list[str]) -> list[str]:
    """Flatten comma-joined values, trim, drop empties and duplicates in order."""
    items: dict[str, None] = {}
    for value in values:
        for part in value.split(","):
            part = part.strip()
            if part:
                items.setdefault(part, None)
    return list(items)


class SearchUrl:
    """A search URL whose station facet may name several stations.

    The station facet is read from the ``station`` query parameter, either
    comma-joined (``station=4232,4233``) or repeated
    (``station=4232&station=4233``).
    """

    def __init__(self, url: str, allowed_hosts: tuple[str, ...] | list[str] = DEFAULT_ALLOWED_HOSTS):
        self.original_url = url
        self._allowed_hosts = tuple(h.lower() for h in allowed_hosts)
        self._pairs: list[tuple[str, str]] = []
        self._parts = None
        self.is_valid = self._parse()

    def _parse(self) -> bool:
        if not self.original_url or not isinstance(self.original_url, str):
            return False
        try:
            parts = urlsplit(self.original_url)
        except ValueError:
            return False
        if parts.scheme not in ("http", "https") or not parts.hostname:
            return False
        hostname = parts.hostname.lower()
        if not any(hostname == host or hostname.endswith(f".{host}") for host in self._allowed_hosts):
            return False
        self._parts = parts
        self._pairs = parse_qsl(parts.query, keep_blank_values=True)
        return True

    def get_all(self, name: str) -> list[str]:
        return [value for key, value in self._pairs if key == name]

    def get(self, name: str) -> str | None:
        values = self.get_all(name)
        return values[0] if values else None

    def params(self) -> dict[str, str | list[str]]:
        """Query parameters, with repeated keys collected into lists."""
        result: dict[str, str | list[str]] = {}
        for key, value in self._pairs:
            if key in result:
                existing = result[key]
                if isinstance(existing, list):
                    existing.append(value)
                else:
                    result[key] = [existing, value]
            else:
                result[key] = value
        return result

    def station_ids(self) -> list[str]:
        if not self.is_valid:
            return []
        return _split_multi(self.get_all(STATION_PARAM))

    def has_multiple_stations(self) -> bool:
        return len(self.station_ids()) > 1

    def with_station(self, station_id: str) -> "SearchUrl":
        """Copy of this URL with every station parameter replaced by one id."""
        if not self.is_valid or self._parts is None:
            raise ValueError(f"Cannot derive a station URL from invalid URL: {self.original_url}")
        pairs: list[tuple[str, str]] = []
        inserted = False
        for key, value in self._pairs:
            if key == STATION_PARAM:
                if not inserted:
                    pairs.append((STATION_PARAM, station_id))
                    inserted = True
                continue
            pairs.append((key, value))
        if not inserted:
            pairs.append((STATION_PARAM, station_id))
        query = urlencode(pairs, safe=",")
        url = urlunsplit(
            (self._parts.scheme, self._parts.netloc, self._parts.path, query, self._parts.fragment)
        )
        return SearchUrl(url, self._allowed_hosts)

    def split_by_stations(self) -> list["SearchUrl"]:
        """One single-station URL per station id; ``[self]`` for zero or one station."""
        stations = self.station_ids()
        if len(stations) <= 1:
            return [self]
        return [self.with_station(station_id) for station_id in stations]

    def query_id(self) -> str | None:
        """Canonical, order-independent id of the search definition.

        Returns:
            Id such as ``region1_kind0_stations4232-4233_price0,20000``,
            ``"unknown"`` when no recognised parameter is present, or None
            for invalid URLs.
        """
        if not self.is_valid:
            return None

        components: list[str] = []
        region = self.get("region")
        if region:
            components.append(f"region{region}")
        kind = self.get("kind")
        if kind is not None:
            components.append(f"kind{kind}")

        stations = self.station_ids()
        metro = self.get("metro")
        if stations:
            components.append(f"stations{'-'.join(sorted(stations))}")
        elif metro:
            components.append(f"metro{metro}")

        price = self.get("rentprice")
        if price:
            components.append(f"price{price}")

        sections = _split_multi(self.get_all("section"))
        if sections:
            components.append(f"section{'-'.join(sorted(sections))}")

        rooms = _split_multi(self.get_all("layout") or self.get_all("room"))
        if rooms:
            components.append(f"rooms{'-'.join(sorted(rooms))}")

        floor = self.get("floor")
        if floor:
            components.append(f"floor{floor}")

        return "_".join(components) or "unknown"

    def description(self) -> str:
        """Human-readable summary of the search criteria."""
        if not self.is_valid:
            return "Invalid search URL"

        parts: list[str] = []
        region = self.get("region")
        if region:
            parts.append(REGION_NAMES.get(region, f"區域{region}"))

        kind = self.get("kind")
        if kind is not None and kind != "0":
            parts.append(KIND_NAMES.get(kind, f"類型{kind}"))

        stations = self.station_ids()
        metro = self.get("metro")
        if len(stations) == 1:
            parts.append(f"近捷運站{stations[0]}")
        elif stations:
            parts.append(f"近{len(stations)}個捷運站")
        elif metro:
            parts.append(f"捷運{metro}線")

        price = self.get("rentprice")
        if price:
            bounds = price.split(",")
            if len(bounds) == 2:
                low = int(bounds[0]) if bounds[0].isdigit() else 0
                high = int(bounds[1]) if bounds[1].isdigit() else 0
                if low > 0 and high > low:
                    parts.append(f"{low:,}-{high:,}元")
                elif low > 0:
                    parts.append(f"{low:,}元以上")
                elif high > 0:
                    parts.append(f"{high:,}元以下")

        rooms = _split_multi(self.get_all("layout") or self.get_all("room"))
        if rooms:
            parts.append("、".join(f"{r}房" for r in rooms))

        floor = self.get("floor")
        if floor:
            bounds = floor.split(",")
            if len(bounds) == 2:
                parts.append(f"{bounds[0]}-{bounds[1]}樓")

        return " ".join(parts) if parts else "基本搜尋"

    def __str__(self) -> str:
        return self.original_url

    def __repr__(self) -> str:
        return f"<SearchUrl(url='{self.original_url}', valid={self.is_valid})>"


@dataclass
class QueryId:
    """Components parsed back out of a canonical query id."""

    id: str
    region: str | None = None
    kind: str | None = None
    stations: list[str] = field(default_factory=list)
    metro: str | None = None
    price: str | None = None
    sections: list[str] = field(default_factory=list)
    rooms: list[str] = field(default_factory=list)
    floor: str | None = None

    # Longest prefixes first so "stations" is not read as "section"
    _PREFIXES = ("stations", "section", "region", "metro", "price", "rooms", "floor", "kind")

    @classmethod
    def parse(cls, query_id: str) -> "QueryId":
        parsed = cls(id=query_id)
        if not query_id or query_id == "unknown":
            return parsed
        for part in query_id.split("_"):
            for prefix in cls._PREFIXES:
                if not part.startswith(prefix):
                    continue
                value = part[len(prefix):]
                if prefix == "stations":
                    parsed.stations = value.split("-")
                elif prefix == "section":
                    parsed.sections = value.split("-")
                elif prefix == "rooms":
                    parsed.rooms = value.split("-")
                else:
                    setattr(parsed, prefix, value)
                break
        return parsed

    @property
    def is_valid(self) -> bool:
        return bool(self.id) and self.id != "unknown" and self.region is not None

    def price_range(self) -> tuple[int | None, int | None]:
        if not self.price:
            return None, None
        bounds = self.price.split(",")
        if len(bounds) != 2:
            return None, None
        low = int(bounds[0]) if bounds[0].isdigit() else None
        high = int(bounds[1]) if bounds[1].isdigit() else None
        return low or None, high or None

    def group_hash(self) -> str:
        """Coarse key grouping similar searches (region, kind, station count, price tier)."""
        parts = [f"r{self.region or 'unknown'}"]
        if self.kind:
            parts.append(f"k{self.kind}")
        if self.stations:
            parts.append(f"s{len(self.stations)}")
        low, high = self.price_range()
        if low and high:
            parts.append(f"p{(low // 10000) * 10}k")
        return "_".join(parts)
