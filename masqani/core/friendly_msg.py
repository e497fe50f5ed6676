FRIENDLY_MESSAGES = {
    "OperationalError": "Listings are temporarily unavailable. Please try again shortly.",
    "ConnectError": "Unable to reach a required service. Please try again later.",
    "ConnectionError": "Unable to reach a required service. Please try again later.",
    "TimeoutError": "The request took too long. Please try again later.",
    "IntegrityError": "That record conflicts with one that already exists.",
    "ValueError": "Invalid data received. Please check your input and try again.",
}


def get_friendly_message(error: Exception) -> str:
    for key, msg in FRIENDLY_MESSAGES.items():
        if key.lower() in type(error).__name__.lower():
            return msg
    return "Something went wrong on our end. Please try again."
