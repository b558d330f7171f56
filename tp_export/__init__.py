"""Export TrainingPeaks workout libraries and plans to Intervals.icu and PlanMyPeak."""

__version__ = "0.1.0"
