from formflow.core.config import settings
