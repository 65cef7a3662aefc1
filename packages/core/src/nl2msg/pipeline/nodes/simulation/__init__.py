from .node import TransactionSimulator
from .schemas import DryRunReport, SimulationResult

__all__ = ["TransactionSimulator", "DryRunReport", "SimulationResult"]
