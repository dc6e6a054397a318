from decimal import Decimal, ROUND_HALF_UP
from folding_competition.config import Config

class MultiplierCalculator:
    """Handles hardware multiplier calculations for the team competition"""
    
    @staticmethod
    def round_half_up(value, places: int = 0) -> Decimal:
        """
        Round a value using half-up rounding
        
        Args:
            value: Number to round (int, float, str or Decimal)
            places: Number of decimal places to keep
            
        Returns:
            Rounded Decimal
        """
        quantum = Decimal(1).scaleb(-places)
        return Decimal(str(value)).quantize(quantum, rounding=ROUND_HALF_UP)
    
    @staticmethod
    def apply_multiplier(points: int, multiplier: float) -> int:
        """
        Convert raw points into multiplied points
        
        Args:
            points: Raw points delta
            multiplier: Hardware multiplier in effect for this delta
            
        Returns:
            Multiplied points, rounded half-up to a whole point
        """
        multiplied = Decimal(points) * Decimal(str(multiplier))
        return int(MultiplierCalculator.round_half_up(multiplied))
    
    @staticmethod
    def calculate_multiplier(best_average_ppd: int, average_ppd: int) -> float:
        """
        Calculate the multiplier for hardware relative to the best performing hardware
        
        Args:
            best_average_ppd: Highest average PPD across all tracked hardware
            average_ppd: Average PPD of the hardware being calculated
            
        Returns:
            Multiplier rounded to 2 decimal places, never below 1.0
        """
        if average_ppd <= 0:
            raise ValueError("average_ppd must be positive")
        
        ratio = Decimal(best_average_ppd) / Decimal(average_ppd)
        multiplier = float(MultiplierCalculator.round_half_up(ratio, Config.MULTIPLIER_DECIMAL_PLACES))
        return max(Config.MINIMUM_MULTIPLIER, multiplier)
    
    @staticmethod
    def derive_points(multiplied_points: int, multiplier: float) -> int:
        """Reverse a multiplier to find the raw points for a multiplied value"""
        raw = Decimal(multiplied_points) / Decimal(str(multiplier))
        return int(MultiplierCalculator.round_half_up(raw))
