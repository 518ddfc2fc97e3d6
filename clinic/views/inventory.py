from django.shortcuts import get_object_or_404
from rest_framework.decorators import api_view, parser_classes, permission_classes
from rest_framework.parsers import FormParser, MultiPartParser
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework import status

from clinic.models import Medication, Supplier
from clinic.permissions import resource_permission
from clinic.serializers.inventory import MedicationSerializer, StockChangeSerializer, StockSetSerializer, SupplierSerializer
from clinic.services import inventory as inv_service
from clinic.services.uploads import store_upload

InventoryPermission = resource_permission('inventory')
InventoryUpdatePermission = resource_permission('inventory', 'update')


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, InventoryPermission])
def medications_list(request):
    if request.method == 'GET':
        qs = Medication.objects.select_related('supplier').order_by('name', 'id')
        return Response({'ok': True, 'data': [inv_service.serialize_medication(m) for m in qs]})
    s = MedicationSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    med = inv_service.create_medication(s.validated_data, user=request.user)
    return Response({'ok': True, 'data': inv_service.serialize_medication(med)}, status=status.HTTP_201_CREATED)


@api_view(['GET'])
@permission_classes([IsAuthenticated, resource_permission('inventory', 'read')])
def medication_generate_code(request):
    return Response({'ok': True, 'code': inv_service.generate_medication_code()})


@api_view(['GET', 'PUT', 'DELETE'])
@permission_classes([IsAuthenticated, InventoryPermission])
def medication_detail(request, pk: int):
    med = get_object_or_404(Medication.objects.select_related('supplier'), pk=pk)
    if request.method == 'GET':
        return Response({'ok': True, 'data': inv_service.serialize_medication(med)})
    if request.method == 'PUT':
        s = MedicationSerializer(data=request.data, partial=True, context={'instance': med})
        s.is_valid(raise_exception=True)
        data = dict(s.validated_data)
        if not data.get('code', med.code):
            data.pop('code', None)
        med = inv_service.update_medication(med, data, user=request.user)
        return Response({'ok': True, 'data': inv_service.serialize_medication(med)})
    inv_service.delete_medication(med, user=request.user)
    return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['POST', 'PUT'])
@permission_classes([IsAuthenticated, InventoryUpdatePermission])
def medication_stock(request, pk: int):
    """POST applies a delta (clamped at zero); PUT sets an absolute count."""
    if request.method == 'POST':
        s = StockChangeSerializer(data=request.data)
        s.is_valid(raise_exception=True)
        med, movement = inv_service.adjust_stock(pk, s.validated_data['change'],
                                                 reason=s.validated_data.get('reason', ''), user=request.user)
    else:
        s = StockSetSerializer(data=request.data)
        s.is_valid(raise_exception=True)
        med, movement = inv_service.set_stock(pk, s.validated_data['currentStock'],
                                              reason=s.validated_data.get('reason', ''), user=request.user)
    return Response({
        'ok': True,
        'data': inv_service.serialize_medication(med),
        'movement': inv_service.serialize_movement(movement),
    })


@api_view(['GET'])
@permission_classes([IsAuthenticated, resource_permission('inventory', 'read')])
def medication_movements(request, pk: int):
    med = get_object_or_404(Medication, pk=pk)
    return Response({'ok': True, 'data': [inv_service.serialize_movement(m) for m in med.movements.all()[:200]]})


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, InventoryPermission])
def suppliers_list(request):
    if request.method == 'GET':
        return Response({'ok': True, 'data': [inv_service.serialize_supplier(s) for s in Supplier.objects.order_by('name')]})
    s = SupplierSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    supplier = Supplier.objects.create(**s.validated_data)
    return Response({'ok': True, 'data': inv_service.serialize_supplier(supplier)}, status=status.HTTP_201_CREATED)


@api_view(['POST'])
@permission_classes([IsAuthenticated, resource_permission('inventory', 'create')])
@parser_classes([MultiPartParser, FormParser])
def upload_view(request):
    f = request.FILES.get('file')
    if f is None:
        return Response({'ok': False, 'detail': 'No file provided'}, status=400)
    try:
        payload = store_upload(f)
    except ValueError as e:
        return Response({'ok': False, 'detail': str(e)}, status=400)
    return Response({'ok': True, **payload}, status=status.HTTP_201_CREATED)
