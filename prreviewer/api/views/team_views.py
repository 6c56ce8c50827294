from rest_framework import status
from rest_framework.decorators import api_view
from rest_framework.response import Response

from ..errors import ServiceError
from ..services import TeamService
from ..serializers import TeamSerializer, TeamMemberSerializer, ReplacementSerializer
from .errors import server_error, service_error, validation_error


@api_view(['POST'])
def team_add(request):
    """POST /team/add - Создать команду с участниками"""
    try:
        if not isinstance(request.data, dict):
            return validation_error('request body must be a JSON object')

        team_name = request.data.get('team_name')
        members_data = request.data.get('members', [])

        if not team_name:
            return validation_error('team_name is required')

        if not isinstance(members_data, list):
            return validation_error('members must be a list')

        for i, member in enumerate(members_data):
            if not isinstance(member, dict) or not all(
                key in member for key in ['user_id', 'username', 'is_active']
            ):
                return validation_error(f'Member at index {i} is missing required fields')
            if not isinstance(member['is_active'], bool):
                return validation_error(f'Member at index {i}: is_active must be a boolean')

        team = TeamService.create_team_with_members(team_name, members_data)
        serializer = TeamSerializer(team)

        return Response({
            'team': serializer.data
        }, status=status.HTTP_201_CREATED)

    except ServiceError as e:
        return service_error(e)
    except Exception:
        return server_error(request)


@api_view(['GET'])
def team_get(request):
    """GET /team/get - Получить команду с участниками"""
    try:
        team_name = request.query_params.get('team_name')

        if not team_name:
            return validation_error('team_name parameter is required')

        team = TeamService.get_team_with_members(team_name)
        serializer = TeamSerializer(team)

        return Response(serializer.data)

    except ServiceError as e:
        return service_error(e)
    except Exception:
        return server_error(request)


@api_view(['POST'])
def team_deactivate(request):
    """POST /team/deactivate - Деактивировать участников команды и переназначить их открытые PR"""
    try:
        if not isinstance(request.data, dict):
            return validation_error('request body must be a JSON object')

        team_name = request.data.get('team_name')
        user_ids = request.data.get('user_ids') or []

        if not team_name:
            return validation_error('team_name is required')

        if not isinstance(user_ids, list):
            return validation_error('user_ids must be a list')

        users, replacements = TeamService.bulk_deactivate_team_members(team_name, user_ids)

        return Response({
            'team_name': team_name,
            'deactivated': TeamMemberSerializer(users, many=True).data,
            'reassigned': ReplacementSerializer(replacements, many=True).data,
        })

    except ServiceError as e:
        return service_error(e)
    except Exception:
        return server_error(request)
