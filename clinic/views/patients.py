"""
Patient record views.

Listing, creating, reading, updating and deleting patients.  The detail
view also returns the patient's appointments, prescriptions and
invoices so that the record page needs a single request.  Deleting a
patient removes those records as well.
"""
from __future__ import annotations

from django.shortcuts import get_object_or_404
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework import status

from clinic.models import Patient
from clinic.permissions import resource_permission
from clinic.serializers.patients import PatientListQuerySerializer, PatientSerializer
from clinic.services.appointments import serialize_appointment
from clinic.services.audit import log_action
from clinic.services.billing import serialize_invoice
from clinic.services.patients import create_patient, list_patients, serialize_patient, update_patient
from clinic.services.prescriptions import list_prescriptions, serialize_prescription

PatientsPermission = resource_permission('patients')


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, PatientsPermission])
def patients_list(request):
    if request.method == 'GET':
        q = PatientListQuerySerializer(data=request.query_params)
        q.is_valid(raise_exception=True)
        patients = list_patients(q=q.validated_data.get('q'), status=q.validated_data.get('status'))
        return Response({'ok': True, 'data': [serialize_patient(p) for p in patients]})
    s = PatientSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    patient = create_patient(s.validated_data)
    log_action(user=request.user, action='patient_create', object_type='patient', object_id=patient.id,
               detail={'patientNo': patient.patient_no})
    return Response({'ok': True, 'data': serialize_patient(patient)}, status=status.HTTP_201_CREATED)


@api_view(['GET', 'PUT', 'DELETE'])
@permission_classes([IsAuthenticated, PatientsPermission])
def patient_detail(request, pk: int):
    patient = get_object_or_404(Patient, pk=pk)
    if request.method == 'GET':
        payload = serialize_patient(patient)
        payload['appointments'] = [
            serialize_appointment(a, with_patient=False)
            for a in patient.appointments.select_related('provider').order_by('-start_at')
        ]
        payload['prescriptions'] = [
            serialize_prescription(rx, with_items=False)
            for rx in patient.prescriptions.select_related('prescriber', 'invoice').order_by('-created_at')
        ]
        payload['invoices'] = [
            serialize_invoice(inv, with_lines=False)
            for inv in patient.invoices.order_by('-issue_date', '-id')
        ]
        return Response({'ok': True, 'data': payload})
    if request.method == 'PUT':
        s = PatientSerializer(data=request.data, partial=True, context={'instance': patient})
        s.is_valid(raise_exception=True)
        update_patient(patient, s.validated_data)
        log_action(user=request.user, action='patient_update', object_type='patient', object_id=patient.id,
                   detail={'fields': sorted(s.validated_data.keys())})
        return Response({'ok': True, 'data': serialize_patient(patient)})
    # DELETE cascades to appointments, prescriptions and invoices
    log_action(user=request.user, action='patient_delete', object_type='patient', object_id=patient.id,
               detail={'patientNo': patient.patient_no})
    patient.delete()
    return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['GET'])
@permission_classes([IsAuthenticated, resource_permission('prescriptions', 'read')])
def patient_prescriptions(request, pk: int):
    patient = get_object_or_404(Patient, pk=pk)
    data = [serialize_prescription(rx) for rx in list_prescriptions(patient_id=patient.id, limit=None)]
    return Response({'ok': True, 'data': data})
