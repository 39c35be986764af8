"""
Ticket lifecycle services.

Routes call TicketService; the access policy, ticket code generator,
attachment manager and blob storage client are its collaborators.
"""
