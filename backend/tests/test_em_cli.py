"""Tests for the E/M command line calculator."""

import json

from tenacity import wait_none

import em_cli
from app.services import em_inference
from app.services.em_inference import EMInferenceService


class TestClassifyCommand:
    """Test classification from arguments."""

    def test_json_output(self, capsys) -> None:
        """Test --json prints the response contract."""
        exit_code = em_cli.main(["--history", "detailed", "--exam", "detailed", "--mdm", "moderate", "--json"])
        assert exit_code == 0
        data = json.loads(capsys.readouterr().out)
        assert data["code"] == "99214"
        assert data["ranks"] == {"history": 3, "exam": 3, "mdm": 3}

    def test_text_output_warns_on_typo(self, capsys) -> None:
        """Test unrecognized input is flagged in text output."""
        exit_code = em_cli.main(["--history", "detaled", "--exam", "low", "--mdm", "low"])
        assert exit_code == 0
        out = capsys.readouterr().out
        assert "99213" in out
        assert "Unrecognized history complexity" in out

    def test_strict_exit_code(self, capsys) -> None:
        """Test strict mode exits non-zero on a typo."""
        exit_code = em_cli.main(["--history", "detaled", "--strict"])
        assert exit_code == 2
        assert "Unrecognized history complexity" in capsys.readouterr().err


class TestLevelsCommand:
    """Test the reference table listing."""

    def test_levels(self, capsys) -> None:
        """Test all codes are printed."""
        assert em_cli.main(["--levels"]) == 0
        out = capsys.readouterr().out
        for code in ("99211", "99212", "99213", "99214", "99215"):
            assert code in out


class TestFileCommand:
    """Test AI-assisted classification from a transcript file."""

    def test_missing_file(self, tmp_path) -> None:
        """Test a missing file exits with 1."""
        assert em_cli.main(["--file", str(tmp_path / "missing.txt")]) == 1

    def test_file_inference(self, tmp_path, monkeypatch, capsys, mock_anthropic_client, reply) -> None:
        """Test the transcript is sent for inference."""
        mock_anthropic_client.messages.create.return_value = reply(
            '{"reasoning": "Moderate MDM", "details": {"history_complexity": "comprehensive", '
            '"exam_complexity": "detailed", "mdm_complexity": "moderate"}}'
        )
        monkeypatch.setattr(
            em_inference,
            "_inference_service",
            EMInferenceService(client=mock_anthropic_client, retry_wait=wait_none()),
        )
        transcript = tmp_path / "visit.txt"
        transcript.write_text("Patient with worsening heart failure.")

        assert em_cli.main(["--file", str(transcript), "--json"]) == 0
        data = json.loads(capsys.readouterr().out)
        assert data["code"] == "99214"
        assert data["reasoning"] == "Moderate MDM"

    def test_invalid_utf8_is_replaced_not_dropped(self, tmp_path, monkeypatch, mock_anthropic_client, reply) -> None:
        """Test undecodable bytes show up as replacement characters in the prompt."""
        mock_anthropic_client.messages.create.return_value = reply(
            '{"details": {"history_complexity": "detailed", "exam_complexity": "detailed", '
            '"mdm_complexity": "moderate"}}'
        )
        monkeypatch.setattr(
            em_inference,
            "_inference_service",
            EMInferenceService(client=mock_anthropic_client, retry_wait=wait_none()),
        )
        transcript = tmp_path / "visit.txt"
        transcript.write_bytes(b"BP 120/80 \xff\xfe then chest pain")

        assert em_cli.main(["--file", str(transcript), "--json"]) == 0
        prompt = mock_anthropic_client.messages.create.call_args.kwargs["messages"][0]["content"]
        assert "BP 120/80 \ufffd\ufffd then chest pain" in prompt
