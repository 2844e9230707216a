from dataclasses import dataclass
from datetime import date, timedelta


@dataclass(frozen=True)
class AnalysisWindow:
    """Inclusive calendar date range the weather data is summed over."""
    start_date: date
    end_date: date

    @staticmethod
    def ending_yesterday(today: date, lookback_days: int = 7) -> "AnalysisWindow":
        """
        Window [today-1-N, today-1]. Today is excluded because the provider
        does not finalize a day's values until the day is over.
        """
        end_date = today - timedelta(days=1)
        return AnalysisWindow(start_date=end_date - timedelta(days=lookback_days), end_date=end_date)


@dataclass(frozen=True)
class WeatherSnapshot:
    """Aggregated weather over one analysis window. Does not validate the data."""
    eto_inches: float               # summed reference evapotranspiration
    precipitation_inches: float     # summed precipitation
    start_date: date
    end_date: date
    day_count: int                  # number of daily records that were summed

    @property
    def window(self) -> AnalysisWindow:
        return AnalysisWindow(start_date=self.start_date, end_date=self.end_date)
