# cimis_irrigation/weather/cimis_parser.py

from datetime import date

from cimis_irrigation.exceptions import ParseError
from cimis_irrigation.utils.logger import get_logger
from cimis_irrigation.weather.weather_snapshot import WeatherSnapshot


logger = get_logger("cimis_parser")


def parse_weather_document(document: dict, start_date: date, end_date: date) -> WeatherSnapshot:
    """
    Sums daily ETo and precipitation from a CIMIS data document.

    Expected shape: Data.Providers[0].Records[*].{DayAsceEto,DayPrecip}.Value, where
    Value is a numeric string. A null precipitation value is counted as 0.0 (the
    provider leaves the newest day null until it is finalized).

    Every structural or type problem is collected instead of failing on the first
    one, so a single bad day does not hide others.

    :raises ParseError: if at least one problem was found; carries the total count.
    """
    problems: list[str] = []
    total_eto = 0.0
    total_precipitation = 0.0

    records = _get_records(document, problems)
    for index, record in enumerate(records):
        if not isinstance(record, dict):
            problems.append(f"Records[{index}] is not an object")
            continue

        eto = _read_value(record, "DayAsceEto", index, problems, allow_null=False)
        if eto is not None:
            total_eto += eto

        precipitation = _read_value(record, "DayPrecip", index, problems, allow_null=True)
        if precipitation is not None:
            total_precipitation += precipitation
        elif isinstance(record.get("DayPrecip"), dict) and record["DayPrecip"].get("Value") is None:
            logger.info(f"Precipitation for {record.get('Date', f'record {index}')} is null, counting it as 0.")

    if problems:
        for problem in problems:
            logger.debug(f"Weather document problem: {problem}")
        raise ParseError(
            f"There were {len(problems)} type errors when parsing the ETo document.",
            error_count=len(problems),
            problems=problems
        )

    logger.info(f"Parsed {len(records)} days: ETo {total_eto:.2f} in, precipitation {total_precipitation:.2f} in.")
    return WeatherSnapshot(
        eto_inches=total_eto,
        precipitation_inches=total_precipitation,
        start_date=start_date,
        end_date=end_date,
        day_count=len(records)
    )


def _get_records(document, problems: list[str]) -> list:
    if not isinstance(document, dict):
        problems.append("document is not an object")
        return []
    data = document.get("Data")
    if not isinstance(data, dict):
        problems.append("Data is not an object")
        return []
    providers = data.get("Providers")
    if not isinstance(providers, list) or not providers:
        problems.append("Providers is not a non-empty array")
        return []
    provider = providers[0]
    if not isinstance(provider, dict):
        problems.append("Providers[0] is not an object")
        return []
    records = provider.get("Records")
    if not isinstance(records, list):
        problems.append("Records is not an array")
        return []
    return records


def _read_value(record: dict, key: str, index: int, problems: list[str], allow_null: bool) -> float | None:
    item = record.get(key)
    if not isinstance(item, dict):
        problems.append(f"Records[{index}].{key} is not an object")
        return None

    value = item.get("Value")
    if value is None:
        if not allow_null:
            problems.append(f"Records[{index}].{key}.Value is null")
        return None
    if not isinstance(value, str):
        problems.append(f"Records[{index}].{key}.Value is not a string")
        return None
    try:
        return float(value)
    except ValueError:
        problems.append(f"Records[{index}].{key}.Value '{value}' is not a number")
        return None
