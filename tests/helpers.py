import json


def order_payload(items, subtotal=100000, shipping_fee=30000, total=130000, shipping_method="standard"):
    return {
        "customer_info": {
            "full_name": "Nguyen Van A",
            "email": "buyer@example.com",
            "phone": "0912345678",
            "address": "1 Le Loi, District 1",
        },
        "items": items,
        "shipping_method": shipping_method,
        "payment_method": "cod",
        "subtotal": subtotal,
        "shipping_fee": shipping_fee,
        "total": total,
        "notes": "Leave at the front desk",
    }


def vnpay_callback(gateways, payment_id, code="00", **extra):
    """Query parameters VNPay would send back, signed with the shop secret."""
    params = {
        "vnp_TxnRef": str(payment_id),
        "vnp_ResponseCode": code,
        "vnp_TransactionNo": "14012345",
        "vnp_Amount": "13000000",
        **extra,
    }
    params["vnp_SecureHash"] = gateways["vnpay"].sign(params)
    return params


def zalopay_callback(gateways, app_trans_id, **fields):
    fields.setdefault("status", 1)
    data = json.dumps({"app_trans_id": app_trans_id, "amount": 130000, **fields})
    return {"data": data, "mac": gateways["zalopay"].callback_mac(data), "type": 1}
