"""
test_schemas.py — Contract, admission and config tests for TenderLens.

No backend involved. These pin down the rules the dashboard relies on:
  - Score clamping, enum normalisation, effort rounding
  - The "empty" deadline sentinel
  - Frozen results
  - Admission checks and document encoding
  - Config validation and the solution catalogue

Run with:
    python tests/test_schemas.py
    python -m pytest tests/test_schemas.py -v
"""

from __future__ import annotations

import base64
import io
import logging
import os
import sys
import tempfile
from pathlib import Path

# Make sure the project root is importable
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from pydantic import ValidationError

from tender_lens.catalog import SOLUTIONS, get_solution
from tender_lens.composer import compose
from tender_lens.config import Config, ContextConfig, AdmissionConfig
from tender_lens.errors import AdmissionError, EncodingError, SchemaViolationError
from tender_lens.ingestion import admit_document, encode_document, load_document, read_document
from tender_lens.retrieval import fallback_context
from tender_lens.schemas import GroundingSource, is_deadline_present
from tender_lens.validation import validate_analysis

logging.basicConfig(level=logging.INFO, format="%(levelname)s | %(message)s")
logger = logging.getLogger(__name__)

PDF_BYTES = b"%PDF-1.4\n% fake tender for tests\n%%EOF\n"


def _payload(**overrides):
    data = {
        "entityName": "Acme Corp",
        "identifiedSolutions": [],
        "feasibilityScore": 50,
        "alignmentScore": 50,
        "reasoning": "Partial fit.",
        "stakes": [],
        "priorityPoints": [],
        "inScope": [],
        "outOfScope": [],
        "effort": {"employees": 4, "durationMonths": 3, "description": "Small team"},
    }
    data.update(overrides)
    return data


# ── Analysis payload ──────────────────────────────────────────────────────

def test_minimal_payload_defaults():
    """Optional fields stay absent and empty lists are fine."""
    payload = validate_analysis(_payload())
    assert payload.deadline is None
    assert payload.eligibility is None
    assert payload.priority_points == ()
    assert payload.has_deadline is False
    print("  ✓ test_minimal_payload_defaults")


def test_scores_clamped():
    payload = validate_analysis(_payload(feasibilityScore=105, alignmentScore=-5))
    assert payload.feasibility_score == 100
    assert payload.alignment_score == 0

    payload = validate_analysis(_payload(feasibilityScore=72.6, alignmentScore=0))
    assert payload.feasibility_score == 73
    print("  ✓ test_scores_clamped")


def test_non_numeric_score_rejected():
    try:
        validate_analysis(_payload(feasibilityScore="very high"))
    except SchemaViolationError as exc:
        assert any("feasibilityScore" in p for p in exc.problems), exc.problems
    else:
        raise AssertionError("expected SchemaViolationError")
    print("  ✓ test_non_numeric_score_rejected")


def test_enum_case_normalised():
    payload = validate_analysis(_payload(
        stakes=[{"title": "t", "description": "d", "severity": "high"}],
        priorityPoints=[{"title": "t", "description": "d", "urgency": "CRITICAL"}],
    ))
    assert payload.stakes[0].severity == "High"
    assert payload.priority_points[0].urgency == "Critical"

    try:
        validate_analysis(_payload(stakes=[{"title": "t", "description": "d", "severity": "Severe"}]))
    except SchemaViolationError:
        pass
    else:
        raise AssertionError("unknown severity should be rejected")
    print("  ✓ test_enum_case_normalised")


def test_effort_rounding():
    payload = validate_analysis(_payload(
        effort={"employees": 3.6, "durationMonths": -1, "description": "x"}
    ))
    assert payload.effort.employees == 4
    assert payload.effort.duration_months == 0.0
    print("  ✓ test_effort_rounding")


def test_blank_reasoning_rejected():
    try:
        validate_analysis(_payload(reasoning="   "))
    except SchemaViolationError as exc:
        assert any("reasoning" in p for p in exc.problems)
    else:
        raise AssertionError("expected SchemaViolationError")
    print("  ✓ test_blank_reasoning_rejected")


def test_out_of_scope_requires_both_fields():
    for item in [{"point": "", "remediation": "x"}, {"point": "x", "remediation": " "}, {"point": "x"}]:
        try:
            validate_analysis(_payload(outOfScope=[item]))
        except SchemaViolationError:
            continue
        raise AssertionError(f"expected SchemaViolationError for {item}")
    print("  ✓ test_out_of_scope_requires_both_fields")


def test_required_lists_must_be_present():
    """Empty lists are fine; a missing list is a schema violation."""
    for key in ["identifiedSolutions", "stakes", "priorityPoints", "inScope", "outOfScope"]:
        body = _payload()
        del body[key]
        try:
            validate_analysis(body)
        except SchemaViolationError as exc:
            assert any(key in p for p in exc.problems), exc.problems
        else:
            raise AssertionError(f"missing {key} should be rejected")
    print("  ✓ test_required_lists_must_be_present")


def test_non_object_payload_rejected():
    for raw in [[], "text", 42, None]:
        try:
            validate_analysis(raw)
        except SchemaViolationError:
            continue
        raise AssertionError(f"expected SchemaViolationError for {raw!r}")
    print("  ✓ test_non_object_payload_rejected")


def test_eligibility_subfields_independent():
    payload = validate_analysis(_payload(eligibility={"preBidAmount": "INR 2 lakh"}))
    assert payload.eligibility.pre_bid_amount == "INR 2 lakh"
    assert payload.eligibility.financial_requirements is None
    print("  ✓ test_eligibility_subfields_independent")


# ── Deadline sentinel ─────────────────────────────────────────────────────

def test_deadline_sentinel():
    for absent in [None, "", "  ", "empty", "EMPTY", " Empty ", "Not Found", "not mentioned"]:
        assert not is_deadline_present(absent), absent
    for present in ["15 March 2026", "As per GeM Bid Document"]:
        assert is_deadline_present(present), present

    for value in ["empty", "EMPTY"]:
        result = compose(validate_analysis(_payload(deadline=value)), fallback_context("Acme"))
        assert result.has_deadline is False
        assert result.deadline == value
        assert result.model_dump(mode="json", by_alias=True)["hasDeadline"] is False

    dated = compose(validate_analysis(_payload(deadline="15 March 2026")), fallback_context("Acme"))
    assert dated.model_dump(mode="json", by_alias=True)["hasDeadline"] is True
    print("  ✓ test_deadline_sentinel")


def test_blank_deadline_becomes_sentinel():
    payload = validate_analysis(_payload(deadline="   "))
    assert payload.deadline == "empty"
    print("  ✓ test_blank_deadline_becomes_sentinel")


def test_result_is_frozen():
    result = compose(validate_analysis(_payload()), fallback_context("Acme"))
    try:
        result.feasibility_score = 99
    except ValidationError:
        pass
    else:
        raise AssertionError("AnalysisResult should be immutable")
    assert isinstance(result.in_scope, tuple)
    print("  ✓ test_result_is_frozen")


def test_grounding_source_requires_uri():
    try:
        GroundingSource(title="x", uri=" ")
    except ValidationError:
        pass
    else:
        raise AssertionError("blank uri should be rejected")
    assert GroundingSource(uri="http://x").title == "Source"
    print("  ✓ test_grounding_source_requires_uri")


# ── Admission & encoding ──────────────────────────────────────────────────

def test_admission_accepts_pdf():
    admit_document(PDF_BYTES, "application/pdf", filename="Tender.PDF")
    admit_document(PDF_BYTES, "application/pdf; charset=binary")
    print("  ✓ test_admission_accepts_pdf")


def test_admission_rejections():
    cases = [
        (PDF_BYTES, "image/png", None, "type"),
        (PDF_BYTES, None, None, "type"),
        (PDF_BYTES, "application/pdf", "tender.docx", "type"),
        (b"", "application/pdf", None, "empty"),
        (b"0" * (21 * 1024 * 1024), "application/pdf", None, "size"),
    ]
    for data, declared, filename, reason in cases:
        try:
            admit_document(data, declared, filename=filename)
        except AdmissionError as exc:
            assert exc.reason == reason, (declared, filename, exc.reason)
        else:
            raise AssertionError(f"expected AdmissionError for {declared!r}/{filename!r}")
    print("  ✓ test_admission_rejections")


def test_encode_sources():
    expected = base64.b64encode(PDF_BYTES).decode("ascii")
    assert encode_document(PDF_BYTES).data == expected
    assert encode_document(bytearray(PDF_BYTES)).data == expected
    assert encode_document(io.BytesIO(PDF_BYTES)).data == expected

    with tempfile.TemporaryDirectory() as tmp:
        path = Path(tmp) / "tender.pdf"
        path.write_bytes(PDF_BYTES)
        doc = encode_document(path)
        assert doc.data == expected
        assert doc.size_bytes == len(PDF_BYTES)
        assert doc.mime_type == "application/pdf"
        assert doc.raw_bytes() == PDF_BYTES
        assert encode_document(str(path)).data == expected
    print("  ✓ test_encode_sources")


def test_encode_failures():
    closed = io.BytesIO(PDF_BYTES)
    closed.close()
    bad_sources = [
        closed,
        io.StringIO("not binary"),
        12345,
        os.path.join(tempfile.gettempdir(), "definitely-missing-tender-lens.pdf"),
    ]
    for source in bad_sources:
        try:
            read_document(source)
        except EncodingError:
            continue
        raise AssertionError(f"expected EncodingError for {source!r}")
    print("  ✓ test_encode_failures")


def test_load_document_from_disk():
    with tempfile.TemporaryDirectory() as tmp:
        pdf = Path(tmp) / "tender.pdf"
        pdf.write_bytes(PDF_BYTES)
        data, declared = load_document(str(pdf))
        assert data == PDF_BYTES
        assert declared == "application/pdf"

        txt = Path(tmp) / "notes.txt"
        txt.write_text("hello")
        try:
            load_document(str(txt))
        except AdmissionError:
            pass
        else:
            raise AssertionError("text file should be rejected")

        try:
            load_document(str(Path(tmp) / "missing.pdf"))
        except AdmissionError as exc:
            assert exc.reason == "missing"
        else:
            raise AssertionError("missing file should be rejected")
    print("  ✓ test_load_document_from_disk")


# ── Config & catalogue ────────────────────────────────────────────────────

def test_config_validation():
    for bad in [
        dict(context=ContextConfig(max_sources=0)),
        dict(context=ContextConfig(fallback_template="No placeholder here.")),
        dict(admission=AdmissionConfig(max_file_size_mb=0)),
    ]:
        try:
            Config(**bad)
        except ValueError:
            continue
        raise AssertionError(f"expected ValueError for {bad}")

    cfg = Config()
    assert cfg.context.max_sources == 5
    assert cfg.admission.max_file_size_mb == 20
    print("  ✓ test_config_validation")


def test_solution_catalogue():
    assert [s.id for s in SOLUTIONS] == ["cloud-infra", "cybersec", "data-ai", "it-managed"]
    assert get_solution("cybersec").name == "Advanced Cybersecurity Suite"
    try:
        get_solution("quantum")
    except KeyError as exc:
        assert "quantum" in exc.args[0]
    else:
        raise AssertionError("unknown id should raise KeyError")
    print("  ✓ test_solution_catalogue")


def run_all_tests():
    """Run all tests and report results."""
    print("\n" + "=" * 60)
    print("  TenderLens — Schema Test Suite")
    print("=" * 60 + "\n")

    tests = [
        # Payload
        test_minimal_payload_defaults,
        test_scores_clamped,
        test_non_numeric_score_rejected,
        test_enum_case_normalised,
        test_effort_rounding,
        test_blank_reasoning_rejected,
        test_out_of_scope_requires_both_fields,
        test_required_lists_must_be_present,
        test_non_object_payload_rejected,
        test_eligibility_subfields_independent,
        # Deadline
        test_deadline_sentinel,
        test_blank_deadline_becomes_sentinel,
        test_result_is_frozen,
        test_grounding_source_requires_uri,
        # Admission & encoding
        test_admission_accepts_pdf,
        test_admission_rejections,
        test_encode_sources,
        test_encode_failures,
        test_load_document_from_disk,
        # Config & catalogue
        test_config_validation,
        test_solution_catalogue,
    ]

    passed = 0
    failed = 0

    for test_fn in tests:
        try:
            test_fn()
            passed += 1
        except Exception as exc:
            failed += 1
            print(f"  ✗ {test_fn.__name__} FAILED: {exc}")

    print(f"\n{'=' * 60}")
    print(f"  Results: {passed} passed, {failed} failed, {len(tests)} total")
    print(f"{'=' * 60}\n")

    return failed == 0


if __name__ == "__main__":
    success = run_all_tests()
    sys.exit(0 if success else 1)
