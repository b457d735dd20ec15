"""
Unit tests for team and report request schemas.
"""

import inspect
import uuid

import pytest
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from backend.src.schemas import report as report_schemas
from backend.src.schemas import team as team_schemas
from backend.src.schemas.report import CtrfReportRequest
from backend.src.schemas.team import CreateTeamRequest


def _models(module):
    return [
        obj for _, obj in inspect.getmembers(module, inspect.isclass)
        if issubclass(obj, BaseModel) and obj.__module__ == module.__name__
    ]


class TestModelConfig:
    """Schema models declare their configuration through model_config."""

    @pytest.mark.parametrize("module", [team_schemas, report_schemas])
    def test_no_class_based_config(self, module):
        for model in _models(module):
            assert "Config" not in vars(model), model.__name__

    def test_create_team_example_in_json_schema(self):
        schema = CreateTeamRequest.model_json_schema()
        assert schema["example"]["name"] == "Platform QA"


class TestCreateTeamRequest:
    """Tests for team name validation."""

    def test_name_stripped(self):
        assert CreateTeamRequest(name="  QA  ").name == "QA"

    @pytest.mark.parametrize("name", ["", "   ", "bad/name", "x" * 51])
    def test_invalid_names(self, name):
        with pytest.raises(PydanticValidationError):
            CreateTeamRequest(name=name)


class TestCtrfReportRequest:
    """Tests for the report envelope."""

    def test_report_id_optional(self):
        report = CtrfReportRequest(results={})
        assert "reportId" not in report.to_document()

    def test_uuid_report_id_accepted(self):
        report_id = str(uuid.uuid4())
        assert CtrfReportRequest(reportId=report_id, results={}).to_document()["reportId"] == report_id

    @pytest.mark.parametrize("report_id", ["r-1", "", str(uuid.uuid4()) + "\n"])
    def test_malformed_report_id_rejected(self, report_id):
        with pytest.raises(PydanticValidationError):
            CtrfReportRequest(reportId=report_id, results={})
