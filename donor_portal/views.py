from rest_framework.views import APIView
from rest_framework.response import Response


class ApiHomeView(APIView):
    authentication_classes = []
    permission_classes = []

    def get(self, request):
        return Response(
            {
                "message": "Welcome to the Donor Portal API",
                "endpoints": {
                    "admin": "/admin/",
                    "schema": "/api/schema/",
                    "swagger": "/api/schema/swagger-ui/",
                    "statuses": "/donation/statuses/",
                    "workflow": "/donation/workflow/",
                    "applications": "/donation/applications/",
                    "appointments": "/donation/appointments/",
                    "doctors": "/donation/doctors/",
                    "notifications": "/donation/notifications/",
                },
            }
        )
