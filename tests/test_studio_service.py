import httpx
import pytest

from conftest import PNG_RESULT, b64, make_image_bytes
from outfit_studio.common.errors import CapacityError, GenerationError, ValidationError
from outfit_studio.services.generation_types import GarmentForm, GenerationMode, RawImage
from outfit_studio.services.persistence import LocalPersistenceGateway
from outfit_studio.services.prompt_assembler import PromptAssembler
from outfit_studio.services.studio_service import StudioService


class FailingSaveGateway(LocalPersistenceGateway):
    def _insert_project(self, *args, **kwargs):
        raise CapacityError("Storage full. Delete some old images to save new ones.")


def _jpeg():
    return RawImage(data=make_image_bytes("JPEG"), mime_type="image/jpeg", filename="blazer.jpg")


def test_ai_model_submission_generates_and_persists(tmp_path, fake_genai, generation_client):
    gateway = LocalPersistenceGateway(tmp_path)
    account = gateway.register("sam", "sam@example.com", "pw")
    service = StudioService(PromptAssembler(), generation_client, gateway)

    outcome = service.generate(
        account,
        GarmentForm(
            mode=GenerationMode.AI_MODEL,
            garment_description="navy wool blazer",
            model_spec="athletic male model",
            pose="standing, hands in pockets",
            garment_image=_jpeg(),
        ),
    )

    assert outcome.image_url == f"data:image/png;base64,{b64(PNG_RESULT)}"
    assert len(fake_genai.models.calls) == 1
    [project] = gateway.list_projects(account.id)
    assert project.mode is GenerationMode.AI_MODEL
    assert outcome.project == project


def test_custom_model_without_reference_makes_no_network_call(tmp_path, fake_genai, generation_client):
    gateway = LocalPersistenceGateway(tmp_path)
    account = gateway.register("sam", "sam@example.com", "pw")
    service = StudioService(PromptAssembler(), generation_client, gateway)

    with pytest.raises(ValidationError):
        service.generate(
            account,
            GarmentForm(
                mode=GenerationMode.CUSTOM_MODEL,
                garment_description="scarf",
                garment_image=_jpeg(),
            ),
        )
    assert fake_genai.models.calls == []
    assert gateway.list_projects(account.id) == []


def test_failed_save_keeps_generated_image(tmp_path, generation_client):
    gateway = FailingSaveGateway(tmp_path)
    account = gateway.register("sam", "sam@example.com", "pw")
    service = StudioService(PromptAssembler(), generation_client, gateway)

    outcome = service.generate(
        account,
        GarmentForm(mode=GenerationMode.FLAT_LAY, garment_description="tee", garment_image=_jpeg()),
    )

    assert outcome.image_url.startswith("data:image/png;base64,")
    assert not outcome.saved
    assert "Storage full" in outcome.save_error


def test_generation_errors_propagate_unchanged(tmp_path, fake_genai, generation_client):
    fake_genai.models.error = httpx.ConnectError("network unreachable")
    gateway = LocalPersistenceGateway(tmp_path)
    account = gateway.register("sam", "sam@example.com", "pw")
    service = StudioService(PromptAssembler(), generation_client, gateway)

    with pytest.raises(GenerationError, match="network unreachable"):
        service.generate(
            account,
            GarmentForm(mode=GenerationMode.FLAT_LAY, garment_description="tee", garment_image=_jpeg()),
        )
    assert gateway.list_projects(account.id) == []


@pytest.mark.parametrize(
    "slot_content",
    [b"\xff\xfe[", b'{"not": "a list"}', b"[1, 2]"],
)
def test_unreadable_project_slot_keeps_generated_image(tmp_path, generation_client, slot_content):
    gateway = LocalPersistenceGateway(tmp_path)
    account = gateway.register("sam", "sam@example.com", "pw")
    (tmp_path / "outfit_ai_projects.json").write_bytes(slot_content)
    service = StudioService(PromptAssembler(), generation_client, gateway)

    outcome = service.generate(
        account,
        GarmentForm(mode=GenerationMode.FLAT_LAY, garment_description="tee", garment_image=_jpeg()),
    )

    assert outcome.image_url == f"data:image/png;base64,{b64(PNG_RESULT)}"
    assert not outcome.saved
    assert "outfit_ai_projects" in outcome.save_error
