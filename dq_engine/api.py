from typing import Any, Dict, List, Optional

from fastapi import Depends, FastAPI, HTTPException, Query
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel

from dq_engine.config import load_config
from dq_engine.errors import ConfigurationError, DataQualityError, EmptyRecordSetError, InvalidRecordError
from dq_engine.metrics import metrics_endpoint
from dq_engine.persistence import InMemoryResultStore
from dq_engine.quality_engine import QualityEngine
from dq_engine.sources import InMemoryReferenceLookup

app = FastAPI(title="Data Quality Engine")

# Built on first request from the default configuration; tests override get_engine.
_engine: Optional[QualityEngine] = None
_reference_key_field: Optional[str] = None


def get_engine() -> QualityEngine:
    global _engine, _reference_key_field
    if _engine is None:
        config = load_config()
        _engine = QualityEngine.from_config(config)
        _reference_key_field = config["reference"].get("key_field")
    return _engine


class ValidateRequest(BaseModel):
    records: List[Dict[str, Any]]
    references: Optional[List[Dict[str, Any]]] = None
    reference_key_field: Optional[str] = None


class RuleSummaryModel(BaseModel):
    rule_id: str
    rule_name: str
    category: str
    severity: str
    failure_count: int
    weighted_impact: int
    predicate_errors: int = 0


class CategoryRiskModel(BaseModel):
    category: str
    risk_score: int


class SeverityCountModel(BaseModel):
    severity: str
    failure_count: int


class ScorecardModel(BaseModel):
    total_records: int
    records_with_issues: int
    high_severity_issues: int
    quality_score: float


class FailureModel(BaseModel):
    rule_id: str
    rule_name: str
    category: str
    severity: str
    record_id: str
    failure_reason: str
    detected_at: str


@app.post("/validate")
async def validate(req: ValidateRequest, engine: QualityEngine = Depends(get_engine)):
    lookup = None
    if req.references is not None:
        key_field = req.reference_key_field or _reference_key_field
        if not key_field:
            raise HTTPException(status_code=422, detail="reference_key_field is required with references")
        try:
            lookup = InMemoryReferenceLookup.from_records(req.references, key_field)
        except ConfigurationError as e:
            raise HTTPException(status_code=422, detail=str(e))

    # Each batch gets its own failure log; the views serve the last completed batch
    batch = engine.with_store(InMemoryResultStore())
    try:
        report = batch.run_records(req.records, reference_lookup=lookup)
    except (ConfigurationError, InvalidRecordError) as e:
        raise HTTPException(status_code=422, detail=str(e))
    except EmptyRecordSetError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except DataQualityError as e:
        raise HTTPException(status_code=500, detail=str(e))
    engine.adopt(batch)
    return report.to_dict()


@app.get("/views/rule-summary", response_model=List[RuleSummaryModel])
async def rule_summary(engine: QualityEngine = Depends(get_engine)):
    return [row.to_dict() for row in engine.rule_summary()]


@app.get("/views/category-risk", response_model=List[CategoryRiskModel])
async def category_risk(engine: QualityEngine = Depends(get_engine)):
    return [row.to_dict() for row in engine.category_risk()]


@app.get("/views/severity-distribution", response_model=List[SeverityCountModel])
async def severity_distribution(engine: QualityEngine = Depends(get_engine)):
    return [row.to_dict() for row in engine.severity_distribution()]


@app.get("/views/scorecard", response_model=ScorecardModel)
async def scorecard(
    total_records: Optional[int] = Query(None, ge=0),
    engine: QualityEngine = Depends(get_engine),
):
    if total_records is None:
        if engine.last_report is None:
            raise HTTPException(
                status_code=409,
                detail="total_records is required until a run has completed",
            )
        total_records = engine.last_report.total_records
    try:
        return engine.executive_scorecard(total_records).to_dict()
    except EmptyRecordSetError as e:
        raise HTTPException(status_code=409, detail=str(e))


@app.get("/records/{record_id}/failures", response_model=List[FailureModel])
async def record_failures(record_id: str, engine: QualityEngine = Depends(get_engine)):
    return [f.to_dict() for f in engine.failures_for_record(record_id)]


@app.get("/metrics", response_class=PlainTextResponse)
async def metrics():
    return metrics_endpoint()


@app.get("/health")
async def health():
    return {"status": "ok"}
