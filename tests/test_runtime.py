"""
Tests for the Mnemo runtime and command line interface.
"""

import asyncio
import json
import pytest
from datetime import datetime

from mnemo.cli import main
from mnemo.conversation.types import ProcessAction
from mnemo.core.config import MnemoConfig
from mnemo.identity.file_store import FileIdentityStore
from mnemo.identity.models import ConversationEntry, Person
from mnemo.identity.store import MemoryIdentityStore
from mnemo.runtime import MnemoRuntime, TranscriptLineError, parse_transcript_line


NAME_RESPONSE = '[{"name": "James", "speaker": "unknown", "confidence": "high"}]'
SUMMARY_RESPONSE = (
    '{"mainTopics": ["hiking", "Yosemite"], "keyPoints": ["Planning a trip"], '
    '"summary": "Talked about hiking."}'
)


def mock_config(store_url="memory://"):
    config = MnemoConfig()
    config.llm.provider = "mock"
    config.storage.url = store_url
    return config


def transcript_lines():
    return [f"A: {'Hi, I am James' if i == 3 else f'line {i}'}" for i in range(1, 11)]


# ==================== Runtime Tests ====================

class TestTranscriptLines:
    """Tests for replay line parsing."""

    def test_parse_line(self):
        """Test speaker and text are split on the first colon."""
        assert parse_transcript_line("A: Time is 10:30") == ("A", "Time is 10:30")

    def test_skip_blank_and_comments(self):
        """Test blank and comment lines are skipped."""
        assert parse_transcript_line("   ") is None
        assert parse_transcript_line("# header") is None

    def test_invalid_line(self):
        """Test lines without a speaker raise."""
        with pytest.raises(TranscriptLineError):
            parse_transcript_line("no speaker here")


class TestMnemoRuntime:
    """Tests for MnemoRuntime."""

    @pytest.mark.asyncio
    async def test_sessions_are_independent(self):
        """Test each session gets its own state over a shared store."""
        store = MemoryIdentityStore()
        async with MnemoRuntime(mock_config(), identity_store=store) as runtime:
            first = runtime.new_session()
            second = runtime.new_session()

            await first.process_transcription("A", "hello", True)

            assert first is not second
            assert first.identity_store is second.identity_store
            assert second.utterance_count == 0

    @pytest.mark.asyncio
    async def test_replay_learns_and_saves(self):
        """Test a replayed session stores a new person with history."""
        store = MemoryIdentityStore()
        async with MnemoRuntime(mock_config(), identity_store=store) as runtime:
            runtime.llm.provider.set_responses([NAME_RESPONSE, SUMMARY_RESPONSE])

            result = await runtime.replay(transcript_lines())

        assert [p.name for p in result.events[9].new_people] == ["James"]
        assert result.end.people_updated == ["James"]
        assert result.end.topics == ["hiking", "Yosemite"]

        james = await store.find_person_by_name("James")
        assert james.speaker_id == "A"
        assert james.conversation_history[0].key_points == ["Planning a trip"]

    @pytest.mark.asyncio
    async def test_replay_recognizes_returning_person(self):
        """Test a stored label is recognized during replay."""
        store = MemoryIdentityStore()
        await store.store_person(Person(name="Ann", speaker_id="A"))

        async with MnemoRuntime(mock_config(), identity_store=store) as runtime:
            result = await runtime.replay(["A: hello again"])

        assert result.events[0].result.action == ProcessAction.SPEAKER_RECOGNIZED
        assert result.events[0].result.person.name == "Ann"

    @pytest.mark.asyncio
    async def test_match_speaker(self):
        """Test matching a snippet returns the stored person."""
        store = MemoryIdentityStore()
        await store.store_person(Person(name="Sarah", last_topics=["hiking"]))

        async with MnemoRuntime(mock_config(), identity_store=store) as runtime:
            runtime.llm.provider.set_responses(["Sarah"])
            person = await runtime.match_speaker("A: the trail was muddy")

        assert person.name == "Sarah"

    def test_read_only_storage_setting(self, tmp_path):
        """Test the read-only storage setting reaches the file store."""
        config = mock_config(f"file://{tmp_path}")
        config.storage.read_only = True

        runtime = MnemoRuntime(config)

        assert runtime.identity_store.is_read_only is True


# ==================== CLI Tests ====================

def seed_store(data_dir):
    """Store one person in a file store under ``data_dir``."""
    entry = ConversationEntry(
        date=datetime(2024, 6, 1, 12, 0),
        transcript="Talked about hiking.",
        topics=["hiking"],
    )
    ann = Person(
        name="Ann",
        speaker_id="A",
        voice_reference="abc",
        conversation_history=[entry],
        last_met=entry.date,
    )
    asyncio.run(FileIdentityStore(data_dir=data_dir).store_person(ann))
    return f"file://{data_dir}"


class TestCLI:
    """Tests for the mnemo command."""

    def test_people_list_and_show(self, tmp_path, capsys):
        """Test listing and showing stored people."""
        url = seed_store(tmp_path)

        assert main(["--store", url, "people", "list"]) == 0
        assert "- Ann (speaker A, 1 conversations" in capsys.readouterr().out

        assert main(["--store", url, "people", "show", "ann"]) == 0
        shown = json.loads(capsys.readouterr().out)
        assert shown["name"] == "Ann"

        assert main(["--store", url, "people", "show", "nobody"]) == 1

    def test_people_stats(self, tmp_path, capsys):
        """Test store statistics output."""
        url = seed_store(tmp_path)

        assert main(["--store", url, "people", "stats"]) == 0
        stats = json.loads(capsys.readouterr().out)
        assert stats["total_people"] == 1
        assert stats["people_with_voices"] == 1

    def test_export_delete_import(self, tmp_path, capsys):
        """Test export, delete and re-import into another backend."""
        url = seed_store(tmp_path / "src")
        export_path = tmp_path / "export.json"

        assert main(["--store", url, "people", "export", "-o", str(export_path)]) == 0
        assert main(["--store", url, "people", "delete", "Ann"]) == 0
        assert main(["--store", url, "people", "delete", "Ann"]) == 1

        target = f"sqlite://{tmp_path}/people.db"
        assert main(["--store", target, "people", "import", str(export_path)]) == 0
        assert "Imported 1 people" in capsys.readouterr().out

        assert main(["--store", target, "people", "list"]) == 0
        assert "- Ann" in capsys.readouterr().out

    def test_read_only_store_from_environment(self, tmp_path, capsys, monkeypatch):
        """Test MNEMO_STORAGE__READ_ONLY keeps the store unchanged."""
        url = seed_store(tmp_path)
        monkeypatch.setenv("MNEMO_STORAGE__READ_ONLY", "true")

        assert main(["--store", url, "people", "delete", "Ann"]) == 1

        monkeypatch.delenv("MNEMO_STORAGE__READ_ONLY")
        assert main(["--store", url, "people", "list"]) == 0
        assert "- Ann" in capsys.readouterr().out

    def test_import_malformed(self, tmp_path, capsys):
        """Test a malformed import document fails cleanly."""
        bad = tmp_path / "bad.json"
        bad.write_text("{}")

        assert main(["--store", "memory://", "people", "import", str(bad)]) == 1
        assert "Error" in capsys.readouterr().err

    def test_replay_greets_returning_person(self, tmp_path, capsys):
        """Test replay prints a greeting for a recognized speaker."""
        url = seed_store(tmp_path)
        transcript = tmp_path / "session.txt"
        transcript.write_text("# morning walk\nA: Good morning\n\nA: Nice weather\n")

        code = main(["--store", url, "--provider", "mock", "replay", str(transcript)])

        out = capsys.readouterr().out
        assert code == 0
        assert "[A] Good morning" in out
        assert 'Ann\n\nLast time:\n"Talked about hiking."' in out
        assert "No conversation saved." in out

    def test_replay_rejects_bad_line(self, tmp_path, capsys):
        """Test replay stops on a malformed line."""
        transcript = tmp_path / "session.txt"
        transcript.write_text("just words\n")

        code = main(["--store", "memory://", "--provider", "mock", "replay", str(transcript)])

        assert code == 1
        assert "SPEAKER: text" in capsys.readouterr().err

    def test_no_command_prints_help(self, capsys):
        """Test running without a command prints usage."""
        assert main([]) == 0
        assert "usage" in capsys.readouterr().out
