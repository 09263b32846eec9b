"""
Workspace service tests.
"""

import pytest
from sqlalchemy import func, select

from parley.core.exceptions import (
    Conflict,
    InvariantViolation,
    NotFound,
    Unauthorized,
    ValidationFailed,
)
from parley.models import (
    File,
    Message,
    MessageRead,
    OrgRole,
    Reaction,
    WorkspaceInvitation,
    WorkspaceInvitationStatus,
    WorkspaceMember,
    WorkspaceRole,
    WorkspaceType,
)
from parley.schemas.file import ChatAttachmentMetadata
from parley.schemas.message import MessageSendRequest
from parley.schemas.workspace import NotificationSettingsRequest, WorkspaceUpdateRequest
from parley.services.file_service import FileService
from parley.services.message_service import MessageService
from parley.services.workspace_service import WorkspaceService


@pytest.fixture
def service(db, redis) -> WorkspaceService:
    return WorkspaceService(db=db, redis=redis)


@pytest.fixture
async def org_setup(sign_in, create_org, add_org_member):
    owner = await sign_in()
    bob = await sign_in()
    org = await create_org(owner)
    await add_org_member(owner, org.id, bob)
    return owner, bob, org


async def test_create_makes_creator_admin(org_setup, create_workspace):
    owner, _, org = org_setup

    workspace = await create_workspace(owner, org.id, name="general")

    assert workspace.my_role == WorkspaceRole.admin
    assert workspace.is_member is True
    assert workspace.type == WorkspaceType.public
    assert workspace.allow_threads is True


async def test_create_requires_capability(org_setup, sign_in, add_org_member, create_workspace):
    owner, bob, org = org_setup
    carol = await sign_in()
    await add_org_member(owner, org.id, carol, can_create_workspaces=True)

    with pytest.raises(Unauthorized):
        await create_workspace(bob, org.id)
    created = await create_workspace(carol, org.id)
    assert created.my_role == WorkspaceRole.admin


async def test_names_are_unique_per_org_ignoring_case(
    org_setup, sign_in, create_org, create_workspace
):
    owner, _, org = org_setup
    await create_workspace(owner, org.id, name="General")

    with pytest.raises(Conflict) as exc_info:
        await create_workspace(owner, org.id, name="general")
    assert exc_info.value.detail["code"] == "WORKSPACE_NAME_TAKEN"

    other_org = await create_org(owner)
    await create_workspace(owner, other_org.id, name="general")


async def test_rename_checks_uniqueness(service, org_setup, create_workspace):
    owner, _, org = org_setup
    await create_workspace(owner, org.id, name="alpha")
    beta = await create_workspace(owner, org.id, name="beta")

    with pytest.raises(Conflict):
        await service.update_workspace(owner.token, beta.id, WorkspaceUpdateRequest(name="ALPHA"))
    with pytest.raises(ValidationFailed):
        await service.update_workspace(owner.token, beta.id, WorkspaceUpdateRequest(name="  "))

    renamed = await service.update_workspace(
        owner.token, beta.id, WorkspaceUpdateRequest(name="Beta", allow_threads=False)
    )
    assert renamed.name == "Beta"
    assert renamed.allow_threads is False


async def test_listing_shows_memberships_and_public(service, org_setup, create_workspace):
    owner, bob, org = org_setup
    public = await create_workspace(owner, org.id, name="public")
    await create_workspace(owner, org.id, name="private", type=WorkspaceType.private)

    listing = await service.list_workspaces(bob.token, org.id)

    assert [w.id for w in listing.workspaces] == [public.id]
    assert listing.workspaces[0].is_member is False
    assert (await service.list_workspaces(owner.token, org.id)).total == 2


async def test_private_workspace_hidden_from_non_members(service, org_setup, create_workspace):
    owner, bob, org = org_setup
    private = await create_workspace(owner, org.id, type=WorkspaceType.private)

    with pytest.raises(Unauthorized):
        await service.get_workspace(bob.token, private.id)


async def test_join_public_records_auto_accepted_invitation(
    service, db, org_setup, create_workspace
):
    owner, bob, org = org_setup
    workspace = await create_workspace(owner, org.id)

    membership = await service.join_workspace(bob.token, workspace.id)

    assert membership.role == WorkspaceRole.member
    invitation = (
        await db.execute(
            select(WorkspaceInvitation).where(WorkspaceInvitation.user_id == bob.id)
        )
    ).scalar_one()
    assert invitation.status == WorkspaceInvitationStatus.auto_accepted

    with pytest.raises(Conflict):
        await service.join_workspace(bob.token, workspace.id)


async def test_cannot_join_private_or_archived(service, org_setup, create_workspace):
    owner, bob, org = org_setup
    private = await create_workspace(owner, org.id, type=WorkspaceType.private)
    archived = await create_workspace(owner, org.id)
    await service.archive_workspace(owner.token, archived.id)

    for workspace_id in (private.id, archived.id):
        with pytest.raises(Unauthorized):
            await service.join_workspace(bob.token, workspace_id)


async def test_add_member_must_be_org_member(
    org_setup, sign_in, create_workspace, add_workspace_member
):
    owner, bob, org = org_setup
    outsider = await sign_in()
    workspace = await create_workspace(owner, org.id)

    with pytest.raises(ValidationFailed):
        await add_workspace_member(owner, workspace.id, outsider)

    added = await add_workspace_member(owner, workspace.id, bob, role=WorkspaceRole.viewer)
    assert added.role == WorkspaceRole.viewer

    with pytest.raises(Unauthorized):
        await add_workspace_member(bob, workspace.id, owner)


async def test_last_admin_protection(
    service, org_setup, create_workspace, add_workspace_member
):
    owner, bob, org = org_setup
    workspace = await create_workspace(owner, org.id)
    await add_workspace_member(owner, workspace.id, bob)

    with pytest.raises(InvariantViolation) as exc_info:
        await service.remove_member(owner.token, workspace.id, owner.id)
    assert exc_info.value.detail["code"] == "LAST_WORKSPACE_ADMIN"

    await service.update_member_role(owner.token, workspace.id, bob.id, WorkspaceRole.admin)
    await service.remove_member(owner.token, workspace.id, owner.id)

    members = await service.list_members(bob.token, workspace.id)
    assert [m.user_id for m in members.members] == [bob.id]


async def test_last_admin_may_leave_archived_workspace(service, org_setup, create_workspace):
    owner, _, org = org_setup
    workspace = await create_workspace(owner, org.id)
    archived = await service.archive_workspace(owner.token, workspace.id)
    assert archived.is_archived is True
    assert archived.type == WorkspaceType.archived

    await service.remove_member(owner.token, workspace.id, owner.id)


async def test_members_cannot_remove_others(
    service, org_setup, sign_in, add_org_member, create_workspace, add_workspace_member
):
    owner, bob, org = org_setup
    carol = await sign_in()
    await add_org_member(owner, org.id, carol, role=OrgRole.admin)
    workspace = await create_workspace(owner, org.id)
    await add_workspace_member(owner, workspace.id, bob)
    await add_workspace_member(owner, workspace.id, carol)

    # Org admin rank does not carry over into the workspace
    with pytest.raises(Unauthorized):
        await service.remove_member(carol.token, workspace.id, bob.id)

    await service.remove_member(bob.token, workspace.id, bob.id)


async def test_update_notifications(service, org_setup, create_workspace, add_workspace_member):
    owner, bob, org = org_setup
    workspace = await create_workspace(owner, org.id)
    await add_workspace_member(owner, workspace.id, bob)

    updated = await service.update_notifications(
        bob.token,
        workspace.id,
        NotificationSettingsRequest(notifications_enabled=False, mention_notifications=True),
    )
    assert updated.notifications_enabled is False
    assert updated.mention_notifications is True


async def _count(db, model, *where) -> int:
    return await db.scalar(select(func.count()).select_from(model).where(*where))


async def test_delete_workspace_removes_its_content(
    db, redis, blob_store, org_setup, create_workspace, add_workspace_member
):
    owner, bob, org = org_setup
    service = WorkspaceService(db=db, redis=redis, blob_store=blob_store)
    messages = MessageService(db=db, redis=redis)
    workspace = await create_workspace(owner, org.id, name="doomed")
    other = await create_workspace(owner, org.id, name="keep")
    await add_workspace_member(owner, workspace.id, bob)

    posted = await messages.send_message(bob.token, workspace.id, MessageSendRequest(text="bye"))
    await messages.add_reaction(owner.token, posted.id, "👋")
    await messages.mark_read(owner.token, posted.id)
    kept = await messages.send_message(owner.token, other.id, MessageSendRequest(text="stay"))

    target = await blob_store.generate_upload_url()
    attachment = await FileService(db=db, redis=redis, blob_store=blob_store).store_metadata(
        bob.token,
        ChatAttachmentMetadata(
            storage_id=target.storage_id,
            context="chat_attachment",
            file_name="notes.txt",
            file_type="text/plain",
            file_size=10,
            org_id=org.id,
            workspace_id=workspace.id,
        ),
    )

    with pytest.raises(Unauthorized) as exc_info:
        await service.delete_workspace(bob.token, workspace.id)
    assert exc_info.value.detail["code"] == "NOT_WORKSPACE_ADMIN"

    await service.delete_workspace(owner.token, workspace.id)

    with pytest.raises(NotFound):
        await service.get_workspace(owner.token, workspace.id)
    assert await _count(db, Message, Message.workspace_id == workspace.id) == 0
    assert await _count(db, Reaction, Reaction.message_id == posted.id) == 0
    assert await _count(db, MessageRead, MessageRead.message_id == posted.id) == 0
    assert await _count(db, WorkspaceMember, WorkspaceMember.workspace_id == workspace.id) == 0
    assert await _count(
        db, WorkspaceInvitation, WorkspaceInvitation.workspace_id == workspace.id
    ) == 0
    assert await db.get(File, attachment.id) is None
    assert attachment.storage_id not in blob_store

    # Other workspaces are untouched
    assert (await messages.get_message(owner.token, kept.id)).text == "stay"
