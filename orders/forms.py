from dataclasses import dataclass

from django import forms

from .errors import InvalidRequest

REQUIRED_FIELDS_MESSAGE = "Missing required fields"
MAX_QUANTITY = 10_000


@dataclass(frozen=True)
class CheckoutRequest:
    product_id: str
    buyer_name: str
    email: str
    address: str
    quantity: int = 1


class CheckoutForm(forms.Form):
    productId = forms.CharField(max_length=64)
    buyerName = forms.CharField(max_length=128)
    email = forms.EmailField(error_messages={"invalid": "Invalid email"})
    address = forms.CharField()
    quantity = forms.IntegerField(
        required=False,
        min_value=1,
        max_value=MAX_QUANTITY,
        error_messages={
            "invalid": "Invalid quantity",
            "min_value": "Invalid quantity",
            "max_value": "Invalid quantity",
        },
    )

    @classmethod
    def from_json(cls, body):
        """Build a bound form from a decoded JSON body.

        ``userName`` is accepted as an alias for ``buyerName``.
        """
        if not isinstance(body, dict):
            raise InvalidRequest("Invalid JSON body")
        data = {
            "productId": body.get("productId"),
            "buyerName": body.get("buyerName") or body.get("userName"),
            "email": body.get("email"),
            "address": body.get("address"),
            "quantity": body.get("quantity"),
        }
        return cls(data={k: v for k, v in data.items() if v is not None})

    def to_request(self) -> CheckoutRequest:
        """Validate and return the typed request, or raise InvalidRequest."""
        if not self.is_valid():
            errors = self.errors.as_data()
            if any(e.code == "required" for errs in errors.values() for e in errs):
                raise InvalidRequest(REQUIRED_FIELDS_MESSAGE)
            first = next(iter(errors.values()))[0]
            raise InvalidRequest(first.messages[0])
        cd = self.cleaned_data
        return CheckoutRequest(
            product_id=cd["productId"].strip(),
            buyer_name=cd["buyerName"].strip(),
            email=cd["email"],
            address=cd["address"].strip(),
            quantity=cd["quantity"] or 1,
        )
