from django.db import models


class Tenant(models.Model):
    """Restaurant group operating on the platform; owns one or more restaurants."""

    name = models.CharField(max_length=200)
    slug = models.SlugField(unique=True)
    contact_email = models.EmailField()
    stripe_connect_account = models.CharField(max_length=200, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return self.name


class Restaurant(models.Model):
    tenant = models.ForeignKey(Tenant, on_delete=models.CASCADE, related_name="restaurants")
    name = models.CharField(max_length=200)
    contact_email = models.EmailField(blank=True)
    phone = models.CharField(max_length=30, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["tenant_id", "name"]

    def __str__(self):
        return self.name
