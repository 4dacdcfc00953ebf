"""Tests for the vendor proxies: chat completions and HeyGen."""

import json

import httpx
import pytest
from httpx import AsyncClient
from sqlalchemy import select

from avatarlab.db.models import AssetStatus, GeneratedVideo
from avatarlab.errors import VendorError
from avatarlab.services.vendors.base import extract_error_message
from avatarlab.services.vendors.heygen import is_personal_avatar, parse_dimension

from conftest import USER_ID

OPENAI_CHAT = "https://api.openai.com/v1/chat/completions"
HEYGEN = "https://api.heygen.com"


# ============== Error extraction ==============


@pytest.mark.parametrize(
    "response, expected",
    [
        (httpx.Response(429, json={"error": {"message": "rate limited"}}), "rate limited"),
        (httpx.Response(400, json={"error": "bad prompt"}), "bad prompt"),
        (httpx.Response(401, json={"message": "invalid key"}), "invalid key"),
        (httpx.Response(422, json={"detail": "unprocessable"}), "unprocessable"),
        (httpx.Response(503, text="upstream down"), "upstream down"),
        (httpx.Response(500, json={"unexpected": True}), "OpenAI API error: 500"),
    ],
)
def test_extract_error_message(response, expected):
    assert extract_error_message(response, "OpenAI") == expected


def test_vendor_error_status_mirroring():
    assert VendorError("x", status_code=429).status_code == 429
    assert VendorError("x", status_code=200).status_code == 500
    assert VendorError("x", status_code=999).status_code == 500
    assert VendorError("x").status_code == 500


# ============== Chat completions ==============


@pytest.mark.asyncio
async def test_chat_completion_returns_vendor_body_verbatim(
    client: AsyncClient, auth_headers: dict, vendor
):
    completion = {
        "id": "chatcmpl-1",
        "object": "chat.completion",
        "choices": [{"index": 0, "message": {"role": "assistant", "content": "Hello!"}}],
    }
    vendor.add("POST", OPENAI_CHAT, httpx.Response(200, json=completion))

    payload = {"model": "gpt-4o-mini", "messages": [{"role": "user", "content": "Hi"}]}
    response = await client.post(
        "/functions/v1/chat-completions", headers=auth_headers, json=payload
    )

    assert response.status_code == 200
    assert response.json() == completion
    assert response.headers["Access-Control-Allow-Origin"] == "*"

    sent = vendor.calls_to(OPENAI_CHAT)[0]
    assert sent.headers["Authorization"] == "Bearer sk-platform"
    assert json.loads(sent.content) == payload


@pytest.mark.asyncio
async def test_vendor_rate_limit_is_propagated(client: AsyncClient, auth_headers: dict, vendor):
    vendor.add(
        "POST", OPENAI_CHAT, httpx.Response(429, json={"error": {"message": "rate limited"}})
    )

    response = await client.post(
        "/functions/v1/chat-completions", headers=auth_headers, json={"messages": []}
    )

    assert response.status_code == 429
    assert response.json() == {"success": False, "error": "rate limited"}


@pytest.mark.asyncio
async def test_vendor_error_with_plain_text_body(client: AsyncClient, auth_headers: dict, vendor):
    vendor.add("POST", OPENAI_CHAT, httpx.Response(502, text="Bad gateway"))

    response = await client.post(
        "/functions/v1/chat-completions", headers=auth_headers, json={"messages": []}
    )

    assert response.status_code == 502
    assert response.json()["error"] == "Bad gateway"


@pytest.mark.asyncio
async def test_network_failure_is_500_with_message(
    client: AsyncClient, auth_headers: dict, vendor
):
    vendor.add("POST", OPENAI_CHAT, httpx.ConnectError("connection refused"))

    response = await client.post(
        "/functions/v1/chat-completions", headers=auth_headers, json={"messages": []}
    )

    assert response.status_code == 500
    assert response.json() == {"success": False, "error": "connection refused"}
    assert len(vendor.requests) == 1  # single attempt, no retry


# ============== HeyGen listing ==============


def test_personal_avatar_filter():
    assert is_personal_avatar({"is_public_avatar": False}) is True
    assert is_personal_avatar({"is_public_avatar": True, "is_custom": True}) is False
    assert is_personal_avatar({"is_custom": True}) is True
    assert is_personal_avatar({"is_talking_photo": True}) is True
    assert is_personal_avatar({"avatar_id": "unknown"}) is False
    assert is_personal_avatar({"is_public_avatar": None, "is_custom": True}) is False


def test_parse_dimension():
    assert parse_dimension("1280x720") == (1280, 720)
    assert parse_dimension("garbage") == (1920, 1080)
    assert parse_dimension(None) == (1920, 1080)


@pytest.mark.asyncio
async def test_list_avatars_keeps_only_personal(client: AsyncClient, auth_headers: dict, vendor):
    avatars = [
        {"avatar_id": "public", "is_public_avatar": True},
        {"avatar_id": "mine", "is_public_avatar": False},
        {"avatar_id": "custom", "is_custom": True},
        {"avatar_id": "unknown"},
    ]
    vendor.add("GET", f"{HEYGEN}/v2/avatars", httpx.Response(200, json={"data": {"avatars": avatars}}))

    response = await client.get(
        "/functions/v1/heygen-list-resources?type=avatars", headers=auth_headers
    )

    assert response.status_code == 200
    data = response.json()
    assert data["success"] is True
    assert [a["avatar_id"] for a in data["data"]] == ["mine", "custom"]
    assert vendor.requests[0].headers["X-Api-Key"] == "hg-platform"


@pytest.mark.asyncio
async def test_list_voices_via_post(client: AsyncClient, auth_headers: dict, vendor):
    voices = [{"voice_id": "v1"}, {"voice_id": "v2"}]
    vendor.add("GET", f"{HEYGEN}/v2/voices", httpx.Response(200, json={"data": {"voices": voices}}))

    response = await client.post(
        "/functions/v1/heygen-list-resources?type=voices", headers=auth_headers
    )

    assert response.status_code == 200
    assert response.json()["data"] == voices


@pytest.mark.asyncio
async def test_list_resources_rejects_unknown_type(
    client: AsyncClient, auth_headers: dict, vendor
):
    response = await client.get(
        "/functions/v1/heygen-list-resources?type=templates", headers=auth_headers
    )

    assert response.status_code == 400
    assert response.json()["error"] == 'Invalid resource type. Use "avatars" or "voices"'
    assert vendor.requests == []


@pytest.mark.asyncio
async def test_non_object_vendor_body_is_bad_gateway(
    client: AsyncClient, auth_headers: dict, vendor
):
    vendor.add("GET", f"{HEYGEN}/v2/avatars", httpx.Response(200, json=[1, 2]))

    response = await client.get(
        "/functions/v1/heygen-list-resources?type=avatars", headers=auth_headers
    )

    assert response.status_code == 502
    assert response.json() == {"success": False, "error": "Invalid response from HeyGen API"}


@pytest.mark.asyncio
async def test_non_object_data_field_lists_nothing(client: AsyncClient, auth_headers: dict, vendor):
    vendor.add("GET", f"{HEYGEN}/v2/voices", httpx.Response(200, json={"data": ["unexpected"]}))

    response = await client.get(
        "/functions/v1/heygen-list-resources?type=voices", headers=auth_headers
    )

    assert response.status_code == 200
    assert response.json()["data"] == []


@pytest.mark.asyncio
async def test_non_object_kie_body_is_bad_gateway(client: AsyncClient, auth_headers: dict, vendor):
    vendor.add(
        "POST", "https://api.kie.ai/api/v1/veo/generate", httpx.Response(200, json=["veo-1"])
    )

    response = await client.post(
        "/functions/v1/generate-video-unified",
        headers=auth_headers,
        json={"prompt": "waves", "provider": "kie-veo3-fast"},
    )

    assert response.status_code == 502
    assert response.json()["error"] == "Invalid response from KIE.AI API"


@pytest.mark.asyncio
async def test_non_object_chat_body_is_bad_gateway(client: AsyncClient, auth_headers: dict, vendor):
    vendor.add("POST", OPENAI_CHAT, httpx.Response(200, json="ok"))

    response = await client.post(
        "/functions/v1/chat-completions", headers=auth_headers, json={"messages": []}
    )

    assert response.status_code == 502
    assert response.json()["success"] is False


# ============== HeyGen avatar video ==============


@pytest.mark.asyncio
async def test_create_avatar_video(client: AsyncClient, auth_headers: dict, vendor, db_session):
    vendor.add(
        "POST",
        f"{HEYGEN}/v2/video/generate",
        httpx.Response(200, json={"data": {"video_id": "hg-video-1"}}),
    )

    response = await client.post(
        "/functions/v1/heygen-avatar-video",
        headers=auth_headers,
        json={
            "script": "Welcome to AvatarLab",
            "voiceId": "voice-1",
            "avatarId": "avatar-1",
            "dimension": "1280x720",
            "speechSpeed": 1.2,
            "addCaptions": True,
        },
    )

    assert response.status_code == 200
    data = response.json()
    assert data["videoId"] == "hg-video-1"
    assert data["status"] == "processing"

    body = json.loads(vendor.requests[0].content)
    assert body["dimension"] == {"width": 1280, "height": 720}
    assert body["video_inputs"][0]["voice"]["speed"] == 1.2
    assert body["caption"] is True

    video = (await db_session.execute(select(GeneratedVideo))).scalar_one()
    assert video.user_id == USER_ID
    assert video.task_id == "hg-video-1"
    assert video.status == AssetStatus.PROCESSING
    assert video.video_url is None


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "payload, message",
    [
        ({"voiceId": "v", "avatarId": "a"}, "Script is required"),
        ({"script": "hi", "avatarId": "a"}, "Voice ID is required"),
        ({"script": "hi", "voiceId": "v"}, "Avatar ID is required for preset avatars"),
        ({"script": "hi", "voiceId": "v", "avatarType": "photo"}, "Photo is required for photo avatars"),
    ],
)
async def test_avatar_video_validation(
    client: AsyncClient, auth_headers: dict, vendor, payload, message
):
    response = await client.post(
        "/functions/v1/heygen-avatar-video", headers=auth_headers, json=payload
    )
    assert response.status_code == 400
    assert response.json()["error"] == message
    assert vendor.requests == []


@pytest.mark.asyncio
async def test_photo_avatar_is_rejected(client: AsyncClient, auth_headers: dict, vendor):
    response = await client.post(
        "/functions/v1/heygen-avatar-video",
        headers=auth_headers,
        json={
            "script": "hi",
            "voiceId": "v",
            "avatarType": "photo",
            "photoAvatar": "data:image/png;base64,AAAA",
        },
    )
    assert response.status_code == 400
    assert "not supported" in response.json()["error"]
    assert vendor.requests == []


@pytest.mark.asyncio
async def test_status_check_completes_video(
    client: AsyncClient, auth_headers: dict, vendor, storage, db_session
):
    db_session.add(
        GeneratedVideo(
            user_id=USER_ID,
            provider="heygen",
            task_id="hg-video-2",
            status=AssetStatus.PROCESSING,
        )
    )
    await db_session.commit()

    vendor.add(
        "GET",
        f"{HEYGEN}/v1/video_status.get",
        httpx.Response(
            200,
            json={
                "data": {
                    "status": "completed",
                    "video_url": "https://cdn.heygen.test/v2.mp4",
                    "thumbnail_url": "https://cdn.heygen.test/v2.jpg",
                    "duration": 12.5,
                }
            },
        ),
    )
    vendor.add(
        "GET",
        "https://cdn.heygen.test/v2.mp4",
        httpx.Response(200, content=b"mp4-bytes", headers={"content-type": "video/mp4"}),
    )

    response = await client.post(
        "/functions/v1/heygen-avatar-video",
        headers=auth_headers,
        json={"checkStatus": True, "videoId": "hg-video-2"},
    )

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "completed"
    assert data["videoUrl"].startswith("https://storage.test/generated-videos/user-1/")
    assert data["thumbnail"] == "https://cdn.heygen.test/v2.jpg"
    assert data["video"]["status"] == "completed"
    assert data["video"]["progress"] == 100
    assert list(storage.objects.values()) == [(b"mp4-bytes", "video/mp4")]


@pytest.mark.asyncio
async def test_status_check_not_found_is_processing(
    client: AsyncClient, auth_headers: dict, vendor
):
    vendor.add("GET", f"{HEYGEN}/v1/video_status.get", httpx.Response(404, text="not found"))

    response = await client.post(
        "/functions/v1/heygen-avatar-video",
        headers=auth_headers,
        json={"checkStatus": True, "videoId": "fresh"},
    )

    assert response.status_code == 200
    assert response.json() == {"success": True, "status": "processing", "progress": 10}


@pytest.mark.asyncio
async def test_status_check_failure_marks_record(
    client: AsyncClient, auth_headers: dict, vendor, db_session
):
    video = GeneratedVideo(
        user_id=USER_ID, provider="heygen", task_id="hg-bad", status=AssetStatus.PROCESSING
    )
    db_session.add(video)
    await db_session.commit()

    vendor.add(
        "GET",
        f"{HEYGEN}/v1/video_status.get",
        httpx.Response(200, json={"data": {"status": "failed", "error": {"message": "bad script"}}}),
    )

    response = await client.post(
        "/functions/v1/heygen-avatar-video",
        headers=auth_headers,
        json={"checkStatus": True, "videoId": "hg-bad"},
    )

    assert response.json()["status"] == "failed"
    assert response.json()["error"] == "bad script"
    await db_session.refresh(video)
    assert video.status == AssetStatus.FAILED
    assert video.error_message == "bad script"


# ============== HeyGen video translation ==============


@pytest.mark.asyncio
async def test_translate_into_several_languages(client: AsyncClient, auth_headers: dict, vendor):
    vendor.add(
        "POST",
        f"{HEYGEN}/v2/video_translate",
        httpx.Response(200, json={"data": {"video_translate_id": "tr-1"}}),
    )

    response = await client.post(
        "/functions/v1/heygen-video-translate",
        headers=auth_headers,
        json={
            "videoUrl": "https://cdn.test/talk.mp4",
            "targetLanguages": ["Spanish", "French"],
            "speakerNum": 2,
            "audioOnly": True,
        },
    )

    assert response.status_code == 200
    assert response.json() == {"success": True, "translateId": "tr-1", "status": "processing"}
    sent = json.loads(vendor.requests[0].content)
    assert sent == {
        "video_url": "https://cdn.test/talk.mp4",
        "output_languages": ["Spanish", "French"],
        "translate_audio_only": True,
        "speaker_num": 2,
        "enable_dynamic_duration": True,
    }
    assert vendor.requests[0].headers["X-Api-Key"] == "hg-platform"


@pytest.mark.asyncio
async def test_translate_into_one_language(client: AsyncClient, auth_headers: dict, vendor):
    vendor.add(
        "POST",
        f"{HEYGEN}/v2/video_translate",
        httpx.Response(200, json={"data": {"video_translate_id": "tr-2"}}),
    )

    await client.post(
        "/functions/v1/heygen-video-translate",
        headers=auth_headers,
        json={
            "videoUrl": "https://cdn.test/talk.mp4",
            "targetLanguages": ["German"],
            "dynamicDuration": False,
        },
    )

    sent = json.loads(vendor.requests[0].content)
    assert sent == {
        "video_url": "https://cdn.test/talk.mp4",
        "output_language": "German",
        "enable_dynamic_duration": False,
    }


@pytest.mark.asyncio
async def test_translate_without_id_is_bad_gateway(client: AsyncClient, auth_headers: dict, vendor):
    vendor.add("POST", f"{HEYGEN}/v2/video_translate", httpx.Response(200, json={"data": {}}))

    response = await client.post(
        "/functions/v1/heygen-video-translate",
        headers=auth_headers,
        json={"videoUrl": "https://cdn.test/talk.mp4", "targetLanguages": ["German"]},
    )

    assert response.status_code == 502
    assert response.json()["error"] == "Invalid response from HeyGen API - no video_translate_id"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "payload, message",
    [
        ({"targetLanguages": ["German"]}, "Video URL is required"),
        ({"videoUrl": "https://cdn.test/a.mp4"}, "At least one target language is required"),
        (
            {"videoUrl": "https://cdn.test/a.mp4", "targetLanguages": []},
            "At least one target language is required",
        ),
        ({"checkStatus": True}, "Video URL is required"),
    ],
)
async def test_translate_validation(
    client: AsyncClient, auth_headers: dict, vendor, payload, message
):
    response = await client.post(
        "/functions/v1/heygen-video-translate", headers=auth_headers, json=payload
    )
    assert response.status_code == 400
    assert response.json()["error"] == message
    assert vendor.requests == []


@pytest.mark.asyncio
async def test_translation_status_completed(client: AsyncClient, auth_headers: dict, vendor):
    vendor.add(
        "GET",
        f"{HEYGEN}/v1/video_translate/tr-1",
        httpx.Response(
            200,
            json={
                "data": {
                    "status": "completed",
                    "video_url": "https://cdn.heygen.test/tr-1.mp4",
                    "duration": 31.5,
                }
            },
        ),
    )

    response = await client.post(
        "/functions/v1/heygen-video-translate",
        headers=auth_headers,
        json={"checkStatus": True, "translateId": "tr-1"},
    )

    assert response.json() == {
        "success": True,
        "status": "completed",
        "progress": 100,
        "videoUrl": "https://cdn.heygen.test/tr-1.mp4",
        "duration": 31.5,
    }


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "stub, expected",
    [
        (httpx.Response(404, text="not found"), {"status": "processing", "progress": 10}),
        (
            httpx.Response(200, json={"data": {"status": "pending"}}),
            {"status": "processing", "progress": 20},
        ),
        (
            httpx.Response(200, json={"data": {"status": "running"}}),
            {"status": "processing", "progress": 30},
        ),
        (
            httpx.Response(200, json={"data": {"status": "failed"}}),
            {"status": "failed", "progress": 0, "error": "Translation failed"},
        ),
    ],
)
async def test_translation_status_states(
    client: AsyncClient, auth_headers: dict, vendor, stub, expected
):
    vendor.add("GET", f"{HEYGEN}/v1/video_translate/", stub)

    response = await client.post(
        "/functions/v1/heygen-video-translate",
        headers=auth_headers,
        json={"checkStatus": True, "translateId": "tr-9"},
    )

    assert response.status_code == 200
    assert response.json() == {"success": True, **expected}
