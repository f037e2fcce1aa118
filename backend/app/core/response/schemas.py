from app.core.response.base_model import CustomBaseModel


class AffectedResult(CustomBaseModel):
    affected_count: int
