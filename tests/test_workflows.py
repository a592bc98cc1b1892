from datetime import timedelta

import pytest

from app.core.errors import ForbiddenError, IllegalTransitionError, NotFoundError
from app.domain.entities import utcnow
from app.domain.patches import IncidentPatch
from app.domain.status import IncidentStatus, MaintenanceStatus, ServiceStatus
from app.models.incident import Incident, IncidentUpdate
from app.repositories.incident_repository import IncidentRepository
from app.repositories.maintenance_repository import MaintenanceRepository
from app.repositories.service_repository import ServiceRepository
from app.services.incident_workflow import IncidentWorkflow
from app.services.maintenance_workflow import MaintenanceWorkflow


@pytest.fixture
def incident_workflow(db, broadcaster):
    return IncidentWorkflow(IncidentRepository(db, broadcaster), ServiceRepository(db, broadcaster))


@pytest.fixture
def maintenance_workflow(db, broadcaster):
    return MaintenanceWorkflow(MaintenanceRepository(db, broadcaster), ServiceRepository(db, broadcaster))


def _status(db, service_id):
    return ServiceRepository(db).find_by_id(service_id).status


def test_resolving_drives_services_back_to_operational(
    db, organization, make_service, broadcaster, recorder, incident_workflow
):
    api = make_service(organization.id, name="API")
    web = make_service(organization.id, name="Web")
    incident = incident_workflow.create(
        organization_id=organization.id,
        title="Everything is down",
        impact="major_outage",
        service_ids=[api.id, web.id],
        user_id="user-1",
    )
    assert _status(db, api.id) == ServiceStatus.MAJOR_OUTAGE
    assert _status(db, web.id) == ServiceStatus.MAJOR_OUTAGE

    broadcaster.join(organization.id, recorder)
    incident_workflow.change_status(incident, "resolved", user_id="user-1")

    assert _status(db, api.id) == ServiceStatus.OPERATIONAL
    assert _status(db, web.id) == ServiceStatus.OPERATIONAL
    assert recorder.names() == ["incident:update", "service:status:change", "service:status:change"]
    changed = {payload["serviceId"] for payload in recorder.of_type("service:status:change")}
    assert changed == {api.id, web.id}
    assert all(payload["status"] == "operational" for payload in recorder.of_type("service:status:change"))


def test_create_publishes_incident_before_service_changes(
    organization, make_service, broadcaster, recorder, incident_workflow
):
    api = make_service(organization.id)
    broadcaster.join(organization.id, recorder)

    incident_workflow.create(
        organization_id=organization.id, title="Slow", impact="degraded", service_ids=[api.id]
    )

    assert recorder.names() == ["incident:create", "service:status:change"]


def test_initial_update_is_logged_with_initial_status(db, organization, incident_workflow):
    incident = incident_workflow.create(
        organization_id=organization.id,
        title="Slow",
        impact="degraded",
        initial_update="Looking into it",
        user_id="user-1",
    )

    [update] = incident_workflow.incidents.get_updates(incident.id)
    assert update.message == "Looking into it"
    assert update.status == IncidentStatus.INVESTIGATING
    assert update.created_by_id == "user-1"


def test_illegal_transition_touches_nothing(db, organization, make_service, broadcaster, recorder, incident_workflow):
    api = make_service(organization.id)
    incident = incident_workflow.create(
        organization_id=organization.id, title="t", impact="degraded", service_ids=[api.id]
    )
    incident_workflow.change_status(incident, "resolved")
    broadcaster.join(organization.id, recorder)

    with pytest.raises(IllegalTransitionError):
        incident_workflow.change_status(incident, "monitoring")

    stored = db.query(Incident).filter(Incident.id == incident.id).one()
    assert stored.status == "resolved"
    assert db.query(IncidentUpdate).filter(IncidentUpdate.incident_id == incident.id).count() == 1
    assert recorder.events == []


def test_foreign_service_is_rejected_before_any_write(db, organization, other_organization, make_service, incident_workflow):
    foreign = make_service(other_organization.id)

    with pytest.raises(ForbiddenError):
        incident_workflow.create(
            organization_id=organization.id, title="t", impact="degraded", service_ids=[foreign.id]
        )

    assert db.query(Incident).count() == 0
    assert _status(db, foreign.id) == ServiceStatus.OPERATIONAL


def test_unknown_service_is_not_found(organization, incident_workflow):
    with pytest.raises(NotFoundError):
        incident_workflow.create(
            organization_id=organization.id, title="t", impact="degraded", service_ids=["missing"]
        )


def test_impact_edit_reapplies_to_attached_services(db, organization, make_service, incident_workflow):
    api = make_service(organization.id)
    incident = incident_workflow.create(
        organization_id=organization.id, title="t", impact="degraded", service_ids=[api.id]
    )

    incident_workflow.edit(incident, IncidentPatch(impact=ServiceStatus.PARTIAL_OUTAGE))

    assert _status(db, api.id) == ServiceStatus.PARTIAL_OUTAGE


def test_attach_and_detach_services(db, organization, make_service, incident_workflow):
    api = make_service(organization.id, name="API")
    web = make_service(organization.id, name="Web")
    incident = incident_workflow.create(organization_id=organization.id, title="t", impact="partial_outage")

    attached = incident_workflow.attach_services(incident, [api.id, web.id])
    assert [s.name for s in attached] == ["API", "Web"]
    assert _status(db, web.id) == ServiceStatus.PARTIAL_OUTAGE

    remaining = incident_workflow.detach_services(incident, [web.id])
    assert [s.name for s in remaining] == ["API"]
    assert _status(db, web.id) == ServiceStatus.OPERATIONAL
    assert _status(db, api.id) == ServiceStatus.PARTIAL_OUTAGE


def test_delete_resets_services(db, organization, make_service, incident_workflow):
    api = make_service(organization.id)
    incident = incident_workflow.create(
        organization_id=organization.id, title="t", impact="major_outage", service_ids=[api.id]
    )

    incident_workflow.delete(incident)

    assert _status(db, api.id) == ServiceStatus.OPERATIONAL
    assert incident_workflow.incidents.find_by_id(incident.id) is None


def test_maintenance_lifecycle(db, organization, make_service, broadcaster, recorder, maintenance_workflow):
    api = make_service(organization.id)
    start = utcnow() + timedelta(hours=1)
    broadcaster.join(organization.id, recorder)

    maintenance = maintenance_workflow.create(
        organization_id=organization.id,
        title="DB upgrade",
        scheduled_start_time=start,
        scheduled_end_time=start + timedelta(hours=2),
        service_ids=[api.id],
    )
    maintenance_workflow.change_status(maintenance, "completed")

    stored = maintenance_workflow.maintenances.find_by_id(maintenance.id)
    assert stored.status == MaintenanceStatus.COMPLETED
    assert stored.actual_start_time is not None
    assert stored.actual_end_time is not None
    assert [s.id for s in maintenance_workflow.maintenances.get_services_for_maintenance(maintenance.id)] == [api.id]
    # maintenance windows never move service status
    assert _status(db, api.id) == ServiceStatus.OPERATIONAL
    assert recorder.names() == ["maintenance:create", "maintenance:status:change"]

    with pytest.raises(IllegalTransitionError):
        maintenance_workflow.change_status(maintenance, "in_progress")
