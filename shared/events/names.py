class Events:
    """Names of the application-level signals carried by the EventBus."""

    CART_UPDATED = "cartUpdated"
    WISHLIST_UPDATED = "wishlistUpdated"
    SHOW_NOTIFICATION = "showNotification"
    GLOBAL_SEARCH = "globalSearch"

    AUTH_REDIRECT = "authRedirect"
    SERVER_RECOVERED = "serverRecovered"
    NEW_NOTIFICATION = "newNotification"
