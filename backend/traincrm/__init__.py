"""TrainCRM - training operations and CRM backend"""

__version__ = "1.0.0"
