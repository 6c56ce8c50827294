from django.urls import include, path

urlpatterns = [
    path('', include('prreviewer.api.urls')),
]
