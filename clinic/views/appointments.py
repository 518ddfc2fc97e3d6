from django.shortcuts import get_object_or_404
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework import status

from clinic.models import Appointment
from clinic.permissions import resource_permission
from clinic.serializers.appointments import AppointmentListQuerySerializer, AppointmentSerializer
from clinic.services.appointments import delete_appointment, list_appointments, save_appointment, serialize_appointment

AppointmentsPermission = resource_permission('appointments')


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, AppointmentsPermission])
def appointments_list(request):
    if request.method == 'GET':
        q = AppointmentListQuerySerializer(data=request.query_params)
        q.is_valid(raise_exception=True)
        vd = q.validated_data
        qs = list_appointments(patient_id=vd.get('patientId'), status=vd.get('status'), day=vd.get('date'))
        return Response({'ok': True, 'data': [serialize_appointment(a) for a in qs]})
    s = AppointmentSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    appt = save_appointment(Appointment(), s.validated_data)
    return Response({'ok': True, 'data': serialize_appointment(appt)}, status=status.HTTP_201_CREATED)


@api_view(['GET', 'PUT', 'DELETE'])
@permission_classes([IsAuthenticated, AppointmentsPermission])
def appointment_detail(request, pk: int):
    appt = get_object_or_404(Appointment.objects.select_related('patient', 'provider'), pk=pk)
    if request.method == 'GET':
        return Response({'ok': True, 'data': serialize_appointment(appt)})
    if request.method == 'PUT':
        s = AppointmentSerializer(data=request.data, partial=True, context={'instance': appt})
        s.is_valid(raise_exception=True)
        save_appointment(appt, s.validated_data)
        appt.refresh_from_db()
        return Response({'ok': True, 'data': serialize_appointment(appt)})
    delete_appointment(appt)
    return Response(status=status.HTTP_204_NO_CONTENT)
