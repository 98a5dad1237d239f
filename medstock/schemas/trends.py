from pydantic import BaseModel, Field, field_validator

DEFAULT_SEASONAL_PATTERNS = "Nenhum"
DEFAULT_STRATEGIC_LEVELS = "Não especificado, usar melhores práticas gerais."


class TrendAnalysisRequest(BaseModel):
    historical_data: str = Field(min_length=10)
    seasonal_patterns: str | None = Field(default=None, validate_default=True)
    strategic_stock_levels: str | None = Field(default=None, validate_default=True)

    @field_validator("historical_data")
    @classmethod
    def validate_historical_data(cls, v: str) -> str:
        v = v.strip()
        if len(v) < 10:
            raise ValueError("Os dados históricos devem ter pelo menos 10 caracteres.")
        return v

    @field_validator("seasonal_patterns", mode="after")
    @classmethod
    def default_seasonal(cls, v: str | None) -> str:
        return v.strip() if v and v.strip() else DEFAULT_SEASONAL_PATTERNS

    @field_validator("strategic_stock_levels", mode="after")
    @classmethod
    def default_levels(cls, v: str | None) -> str:
        return v.strip() if v and v.strip() else DEFAULT_STRATEGIC_LEVELS


class TrendAnalysisResponse(BaseModel):
    trend_visualizations: str
    reorder_recommendations: str


class TrendContextResponse(BaseModel):
    historical_data: str
    strategic_stock_levels: str
