from __future__ import annotations

from typing import Any

from core.models import FetchedFile, FileRecord

MAX_TEXT_LENGTH = 4096
MAX_CAPTION_LENGTH = 1024

UNAVAILABLE_SUFFIX = "Please try again later."


def text_message(text: str) -> dict[str, Any]:
    return {"type": "text", "text": text[:MAX_TEXT_LENGTH]}


def document_message(file_id: str, filename: str, caption: str, failure_text: str) -> dict[str, Any]:
    return {
        "type": "document",
        "file_id": file_id,
        "filename": filename,
        "caption": caption[:MAX_CAPTION_LENGTH],
        "failure_text": failure_text,
    }


def upload_message(filename: str, content: bytes, caption: str, failure_text: str) -> dict[str, Any]:
    return {
        "type": "upload",
        "filename": filename,
        "content": content,
        "caption": caption[:MAX_CAPTION_LENGTH],
        "failure_text": failure_text,
    }


def format_megabytes(size_bytes: int) -> str:
    return f"{size_bytes / (1024 * 1024):.2f} MB"


def build_help_message() -> list[dict[str, Any]]:
    lines = [
        "Hello! I can send a message to a phone number, download files from any URL, "
        "answer questions with AI, and store files behind a PIN so anyone can fetch them later.",
        "",
        "Commands:",
        "/sendmsg - Send a message to a phone number.",
        "/yt_download - Download a YouTube video. (currently unavailable)",
        "/download_url - Download a file from any URL.",
        "/upload_file - Upload a file and get a PIN.",
        "/get_file - Get a file with its PIN.",
        "/ask_ai - Ask the AI a question.",
        "/cancel - Cancel the current operation.",
    ]
    return [text_message("\n".join(lines))]


def build_cancelled_message() -> list[dict[str, Any]]:
    return [text_message("Operation cancelled.")]


def build_unrecognized_command_message() -> list[dict[str, Any]]:
    return [text_message("I don't recognize that command. Use /start to see the available commands.")]


def build_unknown_message() -> list[dict[str, Any]]:
    return [text_message("I didn't understand that. Use /start to see the available commands.")]


def build_attachment_without_command_message() -> list[dict[str, Any]]:
    return [
        text_message(
            "You sent a file. Use /upload_file to upload it, or /start to see the other commands."
        )
    ]


def build_generic_failure_message() -> list[dict[str, Any]]:
    return [text_message("Something went wrong. The operation was cancelled, please try again.")]


def build_ask_number_message() -> list[dict[str, Any]]:
    return [
        text_message(
            "Enter the phone number to send the message to, with country code (e.g. 94712345678)."
        )
    ]


def build_invalid_number_message() -> list[dict[str, Any]]:
    return [text_message("Please enter a valid phone number of at least 10 digits (e.g. 94712345678).")]


def build_ask_message_message() -> list[dict[str, Any]]:
    return [text_message("Good. Now enter the message you want to send.")]


def build_message_reprompt_message() -> list[dict[str, Any]]:
    return [text_message("Please enter the message you want to send as text.")]


def build_relay_result_message(sent: bool) -> list[dict[str, Any]]:
    if sent:
        return [text_message("Sending your message...\n✅ Message sent successfully!")]
    return [text_message("Sending your message...\n❌ Sending the message failed. Please try again.")]


def build_relay_unavailable_message() -> list[dict[str, Any]]:
    return [text_message(f"The message service is unavailable. {UNAVAILABLE_SUFFIX}")]


def build_yt_unavailable_message() -> list[dict[str, Any]]:
    return [text_message("❌ YouTube download is currently unavailable.")]


def build_ask_url_message() -> list[dict[str, Any]]:
    return [text_message("Enter the external URL of the file you want to download.")]


def build_invalid_url_message() -> list[dict[str, Any]]:
    return [text_message("Please enter a valid URL starting with http:// or https://.")]


def build_downloading_message() -> list[dict[str, Any]]:
    return [text_message("Downloading the file...")]


def build_download_sent_messages(fetched: FetchedFile) -> list[dict[str, Any]]:
    return [
        upload_message(
            filename=fetched.filename,
            content=fetched.content,
            caption=f"Your file: {fetched.filename} ({format_megabytes(fetched.size_bytes)})",
            failure_text="❌ Sending the downloaded file failed. Please try again.",
        ),
        text_message("✅ File sent successfully!"),
    ]


def build_download_oversized_message(size_bytes: int) -> list[dict[str, Any]]:
    return [
        text_message(
            f"The file ({format_megabytes(size_bytes)}) is too large to send through Telegram. "
            "Please use another download method."
        )
    ]


def build_download_failed_message(reason: str) -> list[dict[str, Any]]:
    return [
        text_message(
            f"❌ Downloading the file failed: {reason}. Please check that the URL is correct."
        )
    ]


def build_ask_upload_message() -> list[dict[str, Any]]:
    return [text_message("Send the file you want to upload (photo, video, document or audio).")]


def build_upload_reprompt_message() -> list[dict[str, Any]]:
    return [text_message("Please send a valid file (document, video, audio or photo).")]


def build_upload_oversized_message(size_bytes: int) -> list[dict[str, Any]]:
    return [
        text_message(
            f"Your file ({format_megabytes(size_bytes)}) is too large to store and send through Telegram. "
            "Only files under 50 MB can be uploaded."
        )
    ]


def build_upload_unavailable_message() -> list[dict[str, Any]]:
    return [text_message(f"The file upload service is unavailable. {UNAVAILABLE_SUFFIX}")]


def build_upload_success_message(pin: str) -> list[dict[str, Any]]:
    return [
        text_message(
            "✅ File uploaded successfully!\n"
            f"Your PIN: {pin}\n\n"
            "Anyone can use this PIN with the /get_file command to download your file."
        )
    ]


def build_upload_failed_message() -> list[dict[str, Any]]:
    return [text_message("❌ Uploading the file failed. Please try again.")]


def build_file_download_unavailable_message() -> list[dict[str, Any]]:
    return [text_message(f"The file download service is unavailable. {UNAVAILABLE_SUFFIX}")]


def build_ask_pin_message() -> list[dict[str, Any]]:
    return [text_message("Enter the PIN of the file you want to download.")]


def build_pin_reprompt_message() -> list[dict[str, Any]]:
    return [text_message("Please enter the PIN of the file you want to download as text.")]


def build_looking_up_pin_message(pin: str) -> list[dict[str, Any]]:
    return [text_message(f"Looking up PIN {pin}...")]


def build_file_resend_messages(record: FileRecord) -> list[dict[str, Any]]:
    filename = record.display_name or "downloaded_file"
    return [
        document_message(
            file_id=record.remote_file_ref,
            filename=filename,
            caption=f"Your file: {filename}",
            failure_text=(
                "❌ Retrieving the file through Telegram failed. "
                "(The file reference may be invalid or expired.)"
            ),
        ),
        text_message("✅ File sent successfully!"),
    ]


def build_file_oversized_message(size_bytes: int) -> list[dict[str, Any]]:
    return [
        text_message(
            f"The file you are looking for ({format_megabytes(size_bytes)}) is too large to send "
            "through Telegram. Please use another download method."
        )
    ]


def build_invalid_pin_message() -> list[dict[str, Any]]:
    return [text_message("❌ That is not a valid PIN. Please enter the correct PIN.")]


def build_lookup_failed_message() -> list[dict[str, Any]]:
    return [text_message(f"❌ Looking up the file failed. {UNAVAILABLE_SUFFIX}")]


def build_ask_ai_message() -> list[dict[str, Any]]:
    return [text_message("Enter the question or query you want to ask the AI.")]


def build_ai_unavailable_message() -> list[dict[str, Any]]:
    return [text_message(f"The AI service is unavailable. {UNAVAILABLE_SUFFIX}")]


def build_ai_failed_message() -> list[dict[str, Any]]:
    return [text_message(f"Getting a response from the AI failed. {UNAVAILABLE_SUFFIX}")]


def build_ai_response_messages(answer: str) -> list[dict[str, Any]]:
    chunks = [answer[i : i + MAX_TEXT_LENGTH] for i in range(0, len(answer), MAX_TEXT_LENGTH)]
    return [text_message(chunk) for chunk in chunks] or build_ai_failed_message()
