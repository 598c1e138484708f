"""
Tests for command domain models.
"""

import pytest

from resumable_drive.core.domain.commands import CommandAction, CommandResult, UploadCommand


class TestUploadCommand:
    """Test cases for parsing UI requests."""

    def test_actions(self) -> None:
        assert {a.value for a in CommandAction} == {
            "getUploads", "startUpload", "pauseUpload", "resumeUpload",
            "cancelUpload", "clearFinished",
        }

    def test_from_request(self) -> None:
        command = UploadCommand.from_request({'action': "pauseUpload", 'uploadId': "u1"})

        assert command.action == CommandAction.PAUSE_UPLOAD
        assert command.params == {'uploadId': "u1"}
        assert command.command_id

    @pytest.mark.parametrize("request_data,message", [
        ({}, "no action"),
        ({'action': ""}, "no action"),
        ({'action': "formatDisk"}, "Unknown action"),
    ])
    def test_invalid_requests(self, request_data, message: str) -> None:
        with pytest.raises(ValueError, match=message):
            UploadCommand.from_request(request_data)

    def test_require(self) -> None:
        command = UploadCommand.from_request({'action': "resumeUpload", 'uploadId': "u1",
                                              'path': ""})

        assert command.require('uploadId') == "u1"
        with pytest.raises(ValueError, match="path"):
            command.require('path')


class TestCommandResult:

    def test_success(self) -> None:
        result = CommandResult.success("c1", success=True)

        assert result.is_success
        assert result.to_response() == {'success': True}

    def test_failure(self) -> None:
        result = CommandResult.failure("c1", "Upload not found")

        assert not result.is_success
        assert result.to_response() == {'error': "Upload not found"}
