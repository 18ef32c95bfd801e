from pydantic import BaseModel, ConfigDict


class UserStats(BaseModel):
    model_config = ConfigDict(frozen=True)

    monthly_analyses: int
    avg_match_score: int
    messages_generated: int
    active_candidates: int

    def to_response(self) -> dict:
        return {
            "monthlyAnalyses": self.monthly_analyses,
            "avgMatchScore": self.avg_match_score,
            "messagesGenerated": self.messages_generated,
            "activeCandidates": self.active_candidates,
        }
